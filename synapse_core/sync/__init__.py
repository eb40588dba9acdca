from .merge import is_explicitly_cleared, merge_course_data, merge_surge_logs
from .reconcile import RemoteSessionSource, SessionSynchronizer, SyncReport

__all__ = [
    "RemoteSessionSource",
    "SessionSynchronizer",
    "SyncReport",
    "is_explicitly_cleared",
    "merge_course_data",
    "merge_surge_logs",
]
