from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from ..models.draft import Draft
from ..models.connection import Connection, PERSONAL
from ..models.publish_result import PublishResult
from ..publishing.clock import isoformat


class DraftCreate(BaseModel):
    text_content: Optional[str] = None
    media_urls: List[str] = []
    link_url: Optional[str] = None
    target_platforms: List[str] = []
    target_accounts: List[int] = []
    scheduled_at: Optional[datetime] = None


class DraftUpdate(BaseModel):
    """Partial update; only fields present in the body are applied."""
    id: Optional[int] = None
    text_content: Optional[str] = None
    media_urls: Optional[List[str]] = None
    link_url: Optional[str] = None
    target_platforms: Optional[List[str]] = None
    target_accounts: Optional[List[int]] = None
    scheduled_at: Optional[datetime] = None


class DraftDelete(BaseModel):
    id: Optional[int] = None


class PublishRequest(BaseModel):
    draft_id: Optional[int] = None


class ConnectionCreate(BaseModel):
    platform: str
    ownership: str = PERSONAL
    platform_user_id: Optional[str] = None
    platform_username: Optional[str] = None
    external_username: Optional[str] = None


class DisconnectRequest(BaseModel):
    connection_id: Optional[int] = None


class SyncRequest(BaseModel):
    ownership: Optional[str] = None


class ConnectStartRequest(BaseModel):
    ownership: str = PERSONAL
    platforms: Optional[List[str]] = None


# ============================================================
# SERIALIZERS
# ============================================================

def result_to_dict(result: PublishResult) -> dict:
    return {
        "id": result.id,
        "draft_id": result.draft_id,
        "platform": result.platform,
        "account_id": result.account_id,
        "attempt": result.attempt,
        "success": result.success,
        "platform_post_id": result.platform_post_id,
        "platform_post_url": result.platform_post_url,
        "error_message": result.error_message,
        "created_at": isoformat(result.created_at),
        "updated_at": isoformat(result.updated_at),
    }


def draft_to_dict(draft: Draft, include_results: bool = False) -> dict:
    data = {
        "id": draft.id,
        "author_id": draft.author_id,
        "text_content": draft.text_content,
        "media_urls": draft.media_urls or [],
        "link_url": draft.link_url,
        "target_platforms": draft.target_platforms or [],
        "target_accounts": draft.target_accounts or [],
        "scheduled_at": isoformat(draft.scheduled_at),
        "status": draft.status,
        "published_at": isoformat(draft.published_at),
        "upload_job_ref": draft.upload_job_ref,
        "created_at": isoformat(draft.created_at),
        "updated_at": isoformat(draft.updated_at),
    }
    if include_results:
        data["results"] = [result_to_dict(r) for r in draft.results]
    return data


def calendar_entry(draft: Draft) -> dict:
    """Calendar cell: the draft plus which platforms actually went out."""
    data = draft_to_dict(draft)
    data["date"] = isoformat(draft.scheduled_at or draft.created_at)
    data["published_platforms"] = sorted({r.platform for r in draft.results if r.success})
    return data


def connection_to_dict(connection: Connection) -> dict:
    return {
        "id": connection.id,
        "user_id": connection.user_id,
        "platform": connection.platform,
        "ownership": connection.ownership,
        "external_username": connection.external_username,
        "platform_username": connection.platform_username,
        "platform_user_id": connection.platform_user_id,
        "active": connection.active,
        "connected_at": isoformat(connection.connected_at),
        "last_successful_post_at": isoformat(connection.last_successful_post_at),
        "last_error_message": connection.last_error_message,
    }
