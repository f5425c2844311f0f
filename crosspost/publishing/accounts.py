"""
Account Registry

Maps local users to the platform accounts they (or the organization) have
linked through Upload-Post, and decides who may connect or disconnect them.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, or_
from sqlalchemy.orm import Session

from ..auth import RequestContext, SUPER_ADMIN, ADMIN, CONTENT_MANAGER
from ..exceptions import Forbidden, NotFound, ValidationError
from ..logging_config import sync_logger
from ..models.connection import Connection, ORG, PERSONAL, OWNERSHIPS, PENDING_PLATFORM
from .clock import utcnow
from .platforms import normalize_platform

PERSONAL_CONNECT_ROLES = (SUPER_ADMIN, ADMIN, CONTENT_MANAGER)


@dataclass(frozen=True)
class Permissions:
    can_connect_org: bool
    can_connect_personal: bool

    def to_dict(self) -> Dict[str, bool]:
        return {
            "can_connect_org": self.can_connect_org,
            "can_connect_personal": self.can_connect_personal,
        }


def resolve_permissions(role: str) -> Permissions:
    """Connection rights of a role. Only super admins may link org accounts."""
    return Permissions(
        can_connect_org=role == SUPER_ADMIN,
        can_connect_personal=role in PERSONAL_CONNECT_ROLES,
    )


def external_username_for(ownership: str, user_id: int) -> str:
    """Upload-Post profile name for a user's personal or org accounts."""
    return f"{ownership}_{user_id}"


def check_ownership(ownership: str) -> str:
    if ownership not in OWNERSHIPS:
        raise ValidationError(
            f"Invalid ownership '{ownership}'",
            {"allowed": list(OWNERSHIPS)},
        )
    return ownership


def require_connect_permission(ctx: RequestContext, ownership: str):
    permissions = resolve_permissions(ctx.role)
    if ownership == ORG and not permissions.can_connect_org:
        raise Forbidden("Only super admins can create org-level connections")
    if not permissions.can_connect_personal:
        raise Forbidden("You do not have permission to connect social accounts")


class AccountRegistry:
    """Reads and writes Connection rows on behalf of one request."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, connection_id: int) -> Connection:
        connection = self.db.query(Connection).filter(Connection.id == connection_id).first()
        if not connection:
            raise NotFound("Connection not found", {"id": connection_id})
        return connection

    def list_accessible(self, ctx: RequestContext) -> List[Connection]:
        """Active connections the caller may publish to: their own plus all org ones."""
        org_first = case((Connection.ownership == ORG, 0), else_=1)
        return (
            self.db.query(Connection)
            .filter(
                Connection.active.is_(True),
                or_(Connection.user_id == ctx.user_id, Connection.ownership == ORG),
            )
            .order_by(org_first, Connection.connected_at.desc(), Connection.id.desc())
            .all()
        )

    def resolve_targets(self, user_id: int, account_ids: List[int]) -> List[Connection]:
        """Active, reachable connections among ``account_ids``, in the requested order."""
        if not account_ids:
            return []
        rows = (
            self.db.query(Connection)
            .filter(
                Connection.id.in_(account_ids),
                Connection.active.is_(True),
                or_(Connection.user_id == user_id, Connection.ownership == ORG),
            )
            .all()
        )
        by_id = {row.id: row for row in rows}
        ordered = []
        for account_id in account_ids:
            row = by_id.pop(account_id, None)
            if row is not None and row.external_username:
                ordered.append(row)
        return ordered

    def disconnect(self, connection_id: int, ctx: RequestContext) -> Connection:
        """Soft-delete a connection the caller has rights over."""
        connection = self.get(connection_id)

        if connection.ownership == ORG:
            allowed = ctx.is_super_admin
        else:
            allowed = connection.user_id == ctx.user_id
        if not allowed:
            raise Forbidden("You do not have permission to disconnect this account")

        self.db.query(Connection).filter(Connection.id == connection.id).update(
            {Connection.active: False}, synchronize_session=False
        )
        self.db.commit()
        self.db.refresh(connection)
        sync_logger.info(
            "Connection disconnected",
            connection_id=connection.id,
            platform=connection.platform,
            ownership=connection.ownership,
            user_id=ctx.user_id,
        )
        return connection

    def find(self, user_id: int, platform: str, ownership: str) -> Optional[Connection]:
        return (
            self.db.query(Connection)
            .filter(
                Connection.user_id == user_id,
                Connection.platform == platform,
                Connection.ownership == ownership,
            )
            .first()
        )

    def upsert(self, user_id: int, platform: str, ownership: str, **fields: Any) -> Tuple[Connection, bool]:
        """Insert or update the row keyed by (user, platform, ownership). Does not commit."""
        connection = self.find(user_id, platform, ownership)
        created = connection is None
        if created:
            connection = Connection(user_id=user_id, platform=platform, ownership=ownership)
            self.db.add(connection)
        for key, value in fields.items():
            setattr(connection, key, value)
        self.db.flush()
        return connection, created

    def connect(
        self,
        ctx: RequestContext,
        platform: str,
        ownership: str = PERSONAL,
        platform_user_id: Optional[str] = None,
        platform_username: Optional[str] = None,
        external_username: Optional[str] = None,
    ) -> Tuple[Connection, bool]:
        """Manually register a connection for platforms linked outside the OAuth hand-off."""
        platform = normalize_platform(platform)
        if not platform:
            raise ValidationError("Platform is required", {"field": "platform"})
        check_ownership(ownership)
        require_connect_permission(ctx, ownership)

        connection, created = self.upsert(
            ctx.user_id,
            platform,
            ownership,
            platform_user_id=platform_user_id,
            platform_username=platform_username,
            external_username=external_username or external_username_for(ownership, ctx.user_id),
            active=True,
            connected_at=utcnow(),
            last_error_message=None,
        )
        self.db.commit()
        self.db.refresh(connection)
        return connection, created

    def record_pending(
        self,
        ctx: RequestContext,
        ownership: str,
        username: str,
        requested_platforms: List[str],
    ) -> Connection:
        """Remember that a connect hand-off was started; replaced by the next sync."""
        connection, _ = self.upsert(
            ctx.user_id,
            PENDING_PLATFORM,
            ownership,
            external_username=username,
            active=False,
            profile_data={
                "connect_started_at": utcnow().isoformat(),
                "requested_platforms": requested_platforms,
            },
        )
        self.db.commit()
        return connection

    def remove_pending(self, user_id: int, ownership: str) -> int:
        """Hard-delete the placeholder row for an ownership. Does not commit."""
        return (
            self.db.query(Connection)
            .filter(
                Connection.user_id == user_id,
                Connection.platform == PENDING_PLATFORM,
                Connection.ownership == ownership,
            )
            .delete(synchronize_session=False)
        )
