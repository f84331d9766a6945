from identity_sync.engine.comparator import compare
from identity_sync.engine.synchronizer import Synchronizer
from identity_sync.engine.conflict_resolver import ConflictResolver
from identity_sync.engine.orphan_reaper import OrphanReaper, validate_retention_days
from identity_sync.engine.status_reporter import StatusReporter

__all__ = [
    'compare',
    'Synchronizer',
    'ConflictResolver',
    'OrphanReaper',
    'validate_retention_days',
    'StatusReporter',
]
