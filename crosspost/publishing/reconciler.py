"""
Status Reconciler

Polls Upload-Post for the real outcome of a submitted draft and applies it.
Upload-Post is the authority for terminal state: an optimistic ``published``
written at dispatch stays open to correction until a poll confirms it.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import RequestContext
from ..exceptions import UpstreamError
from ..logging_config import publish_logger
from ..models.connection import Connection
from ..models.draft import Draft, DraftStatus
from ..models.publish_result import PublishResult
from .clock import utcnow
from .drafts import DraftStore, can_transition
from .platforms import normalize_platform
from .upload_post import UploadPostClient, require_client

# Upload-Post state -> (draft status, stamp published_at)
STATE_MAP = {
    "completed": (DraftStatus.PUBLISHED, True),
    "success": (DraftStatus.PUBLISHED, True),
    "failed": (DraftStatus.FAILED, False),
    "error": (DraftStatus.FAILED, False),
    "partial": (DraftStatus.PARTIALLY_PUBLISHED, True),
}

NO_REQUEST_MESSAGE = "No publish request found"


@dataclass
class ReconcileOutcome:
    status: str
    published_at: Optional[datetime] = None
    upstream_state: Optional[str] = None
    results: List[PublishResult] = field(default_factory=list)
    message: Optional[str] = None


def entry_succeeded(entry: Dict[str, Any]) -> bool:
    if "success" in entry:
        return bool(entry["success"])
    return str(entry.get("status", "")).lower() == "success"


class StatusReconciler:
    def __init__(self, db: Session, client: Optional[UploadPostClient]):
        self.db = db
        self.client = client
        self.drafts = DraftStore(db)

    def _outcome(self, draft: Draft, message: Optional[str] = None) -> ReconcileOutcome:
        return ReconcileOutcome(
            status=draft.status,
            published_at=draft.published_at,
            upstream_state=draft.upstream_state,
            results=list(draft.results),
            message=message,
        )

    def _latest_attempt(self, draft_id: int) -> Optional[int]:
        return (
            self.db.query(func.max(PublishResult.attempt))
            .filter(PublishResult.draft_id == draft_id)
            .scalar()
        )

    def reconcile(self, ctx: RequestContext, draft_id: int) -> ReconcileOutcome:
        draft = self.drafts.get_owned(ctx, draft_id, "view")
        log = publish_logger.bind(draft_id=draft.id, job_ref=draft.upload_job_ref)

        if not draft.upload_job_ref:
            return self._outcome(draft, NO_REQUEST_MESSAGE)

        if draft.status in DraftStatus.TERMINAL and draft.reconciled_at:
            return self._outcome(draft)

        client = require_client(self.client)
        try:
            payload = client.get_status(draft.upload_job_ref)
        except UpstreamError as e:
            # Never write a polling failure to the draft
            log.warning("Status poll failed, returning cached status", error_message=e.message)
            return self._outcome(draft, f"Unable to fetch status from Upload-Post: {e.message}")

        state = str(payload.get("status") or payload.get("state") or "").strip().lower()
        draft.upstream_state = state or None
        new_status, stamp = STATE_MAP.get(state, (None, False))

        if new_status and can_transition(draft.status, new_status):
            draft.status = new_status
            now = utcnow()
            if stamp:
                draft.published_at = now
            draft.reconciled_at = now

            entries = payload.get("results")
            if isinstance(entries, list):
                self._apply_results(draft, entries, now)

            log.info("Draft reconciled", upstream_state=state, status=new_status)
        elif new_status:
            log.warning("Ignoring upstream state for draft", status=draft.status, upstream_state=state)

        self.db.commit()
        self.db.refresh(draft)
        return self._outcome(draft)

    def _apply_results(self, draft: Draft, entries: List[Any], now: datetime):
        attempt = self._latest_attempt(draft.id)
        if attempt is None:
            return

        for entry in entries:
            if not isinstance(entry, dict):
                continue
            platform = normalize_platform(entry.get("platform"))
            if not platform:
                continue

            rows = (
                self.db.query(PublishResult)
                .filter(
                    PublishResult.draft_id == draft.id,
                    PublishResult.attempt == attempt,
                    PublishResult.platform == platform,
                )
                .all()
            )
            succeeded = entry_succeeded(entry)
            error = None if succeeded else (entry.get("error") or entry.get("message"))

            for row in rows:
                row.success = succeeded
                row.platform_post_id = _str_or_none(entry.get("post_id") or entry.get("id"))
                row.platform_post_url = entry.get("url") or entry.get("post_url")
                row.error_message = error
                row.raw_response = entry
                row.updated_at = now

                if row.account_id is None:
                    continue
                if succeeded:
                    changes = {Connection.last_successful_post_at: now, Connection.last_error_message: None}
                else:
                    changes = {Connection.last_error_message: error or "Publishing failed"}
                self.db.query(Connection).filter(Connection.id == row.account_id).update(
                    changes, synchronize_session=False
                )


def _str_or_none(value: Any) -> Optional[str]:
    return str(value) if value not in (None, "") else None
