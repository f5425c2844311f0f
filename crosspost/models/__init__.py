from .user import User
from .draft import Draft, DraftStatus
from .connection import Connection
from .publish_result import PublishResult

__all__ = [
    "User",
    "Draft",
    "DraftStatus",
    "Connection",
    "PublishResult",
]
