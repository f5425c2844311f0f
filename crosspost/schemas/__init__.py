from .auth import UserCreate, UserLogin, UserResponse, TokenResponse, RefreshRequest
from .social import (
    DraftCreate, DraftUpdate, DraftDelete, PublishRequest,
    ConnectionCreate, DisconnectRequest, SyncRequest, ConnectStartRequest,
)

__all__ = [
    "UserCreate", "UserLogin", "UserResponse", "TokenResponse", "RefreshRequest",
    "DraftCreate", "DraftUpdate", "DraftDelete", "PublishRequest",
    "ConnectionCreate", "DisconnectRequest", "SyncRequest", "ConnectStartRequest",
]
