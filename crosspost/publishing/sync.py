"""
Sync Engine

Pulls the platforms a user (and, for super admins, the organization) has
linked on Upload-Post and mirrors them into the local Connection table.
Also starts the hosted connect flow that produces those links.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..auth import RequestContext
from ..config import Settings, get_settings
from ..exceptions import Forbidden, UpstreamError
from ..logging_config import sync_logger
from ..models.connection import ORG, PERSONAL, OWNERSHIPS
from .accounts import AccountRegistry, check_ownership, external_username_for, require_connect_permission
from .clock import utcnow
from .platforms import extract_connected_platforms
from .upload_post import UploadPostClient, require_client

CONNECT_TITLE = "Connect Your Social Accounts"
CONNECT_DESCRIPTIONS = {
    ORG: "Connect organization social media accounts",
    PERSONAL: "Connect your personal social media accounts",
}


@dataclass
class SyncedPlatform:
    platform: str
    ownership: str
    action: str  # created, updated
    username: Optional[str]
    connection_id: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "platform": self.platform,
            "ownership": self.ownership,
            "action": self.action,
            "username": self.username,
            "connection_id": self.connection_id,
        }


@dataclass
class SyncReport:
    synced: List[SyncedPlatform] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    notices: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "synced": [item.to_dict() for item in self.synced],
            "errors": self.errors,
            "notices": self.notices,
        }


class SyncEngine:
    def __init__(
        self,
        db: Session,
        client: Optional[UploadPostClient],
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.client = client
        self.settings = settings or get_settings()
        self.registry = AccountRegistry(db)

    def usernames(self, ctx: RequestContext, ownership: Optional[str] = None) -> List[Tuple[str, str]]:
        """(ownership, Upload-Post username) pairs the caller may sync."""
        if ownership:
            check_ownership(ownership)
            if ownership == ORG and not ctx.is_super_admin:
                raise Forbidden("Only super admins can sync org-level connections")
            return [(ownership, external_username_for(ownership, ctx.user_id))]

        pairs = [(PERSONAL, external_username_for(PERSONAL, ctx.user_id))]
        if ctx.is_super_admin:
            pairs.append((ORG, external_username_for(ORG, ctx.user_id)))
        return pairs

    def sync(self, ctx: RequestContext, ownership: Optional[str] = None) -> SyncReport:
        targets = self.usernames(ctx, ownership)
        client = require_client(self.client)
        report = SyncReport()

        for kind, username in targets:
            try:
                profile = client.get_user(username)
            except UpstreamError as e:
                sync_logger.warning("Profile fetch failed", username=username, error_message=e.message)
                report.errors.append(f"Failed to fetch {username}: {e.message}")
                continue

            if profile is None:
                report.notices.append(
                    f"User {username} not found in Upload-Post. Make sure you completed the connect flow."
                )
                continue

            now = utcnow()
            for account in extract_connected_platforms(profile):
                connection, created = self.registry.upsert(
                    ctx.user_id,
                    account.platform,
                    kind,
                    external_username=username,
                    platform_username=account.display_name,
                    platform_user_id=account.external_id,
                    active=True,
                    connected_at=now,
                    last_error_message=None,
                    profile_data=account.raw,
                )
                report.synced.append(SyncedPlatform(
                    platform=account.platform,
                    ownership=kind,
                    action="created" if created else "updated",
                    username=account.display_name,
                    connection_id=connection.id,
                ))

            self.registry.remove_pending(ctx.user_id, kind)
            self.db.commit()

        sync_logger.info(
            "Accounts synced",
            user_id=ctx.user_id,
            synced=len(report.synced),
            errors=len(report.errors),
            notices=len(report.notices),
        )
        return report

    def status(self, ctx: RequestContext) -> Dict[str, Dict[str, Any]]:
        """Read-only view of what Upload-Post holds for each ownership."""
        client = require_client(self.client)
        results = {}
        for kind in OWNERSHIPS:
            username = external_username_for(kind, ctx.user_id)
            try:
                profile = client.get_user(username)
            except UpstreamError as e:
                results[kind] = {"error": e.message}
                continue
            if profile is None:
                results[kind] = {"exists": False, "platforms": []}
            else:
                results[kind] = {
                    "exists": True,
                    "platforms": [
                        {
                            "platform": account.platform,
                            "display_name": account.display_name,
                            "external_id": account.external_id,
                        }
                        for account in extract_connected_platforms(profile)
                    ],
                }
        return results

    def start_connect(
        self,
        ctx: RequestContext,
        ownership: str = PERSONAL,
        platforms: Optional[List[str]] = None,
        redirect_base: str = "",
    ) -> Dict[str, Any]:
        """Begin the hosted connect flow and return the URL to send the user to."""
        ownership = check_ownership(ownership or PERSONAL)
        require_connect_permission(ctx, ownership)
        client = require_client(self.client)

        username = external_username_for(ownership, ctx.user_id)
        platform_list = list(platforms or self.settings.connect_platforms)

        try:
            client.create_user(username)
        except UpstreamError as e:
            # The profile may already exist; generate-jwt below is authoritative
            sync_logger.warning("Upload-Post profile create failed", username=username, error_message=e.message)

        redirect_url = (
            f"{redirect_base.rstrip('/')}{self.settings.connect_redirect_path}"
            f"?connected=true&ownership={ownership}"
        )
        connect_url = client.generate_connect_url(
            username=username,
            redirect_url=redirect_url,
            platforms=platform_list,
            connect_title=CONNECT_TITLE,
            connect_description=CONNECT_DESCRIPTIONS[ownership],
        )

        self.registry.record_pending(ctx, ownership, username, platform_list)
        sync_logger.info("Connect flow started", user_id=ctx.user_id, ownership=ownership, username=username)
        return {
            "connect_url": connect_url,
            "external_username": username,
            "ownership": ownership,
            "platforms": platform_list,
        }
