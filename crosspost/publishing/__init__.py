from .accounts import AccountRegistry, Permissions, resolve_permissions
from .drafts import DraftStore
from .dispatcher import PublishDispatcher, DispatchOutcome
from .reconciler import StatusReconciler, ReconcileOutcome
from .sync import SyncEngine, SyncReport
from .upload_post import UploadPostClient, get_upload_post_client

__all__ = [
    "AccountRegistry", "Permissions", "resolve_permissions",
    "DraftStore",
    "PublishDispatcher", "DispatchOutcome",
    "StatusReconciler", "ReconcileOutcome",
    "SyncEngine", "SyncReport",
    "UploadPostClient", "get_upload_post_client",
]
