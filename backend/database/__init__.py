from .connection import get_db, get_engine, get_session_factory, init_db, dispose_engine, Base

__all__ = [
    'get_db', 'get_engine', 'get_session_factory', 'init_db', 'dispose_engine', 'Base',
]
