"""
Draft Store

Persists what the author wants published and owns the draft lifecycle:

    draft -> scheduled               (future scheduled_at set)
    scheduled -> draft               (scheduled_at cleared before dispatch)
    draft/scheduled -> publishing    (dispatch claimed the draft)
    publishing -> published | partially_published | failed | scheduled

Only the dispatcher and the reconciler move a draft out of ``publishing``.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ..auth import RequestContext
from ..exceptions import Forbidden, InvalidState, NotFound, ValidationError
from ..logging_config import publish_logger
from ..models.draft import Draft, DraftStatus
from .clock import as_utc, is_future, utcnow
from .platforms import normalize_platforms

S = DraftStatus

TRANSITIONS = {
    S.DRAFT: {S.DRAFT, S.SCHEDULED, S.PUBLISHING},
    S.SCHEDULED: {S.SCHEDULED, S.DRAFT, S.PUBLISHING, S.PUBLISHED, S.PARTIALLY_PUBLISHED, S.FAILED},
    S.PUBLISHING: {S.PUBLISHED, S.PARTIALLY_PUBLISHED, S.FAILED, S.SCHEDULED},
    # optimistic publishes are corrected by the reconciler
    S.PUBLISHED: {S.PUBLISHED, S.PARTIALLY_PUBLISHED, S.FAILED},
    S.PARTIALLY_PUBLISHED: {S.PARTIALLY_PUBLISHED},
    # editing a failed draft makes it dispatchable again
    S.FAILED: {S.FAILED, S.DRAFT, S.SCHEDULED},
}

CONTENT_FIELDS = ("text_content", "media_urls", "link_url", "target_platforms", "target_accounts")


def has_content(text_content: Optional[str], media_urls: Optional[List[str]]) -> bool:
    return bool((text_content or "").strip()) or bool([url for url in (media_urls or []) if url])


def require_content(text_content: Optional[str], media_urls: Optional[List[str]]):
    if not has_content(text_content, media_urls):
        raise ValidationError("Post must have text content or media", {"fields": ["text_content", "media_urls"]})


def check_statuses(statuses: List[str]) -> List[str]:
    unknown = [s for s in statuses if s not in DraftStatus.ALL]
    if unknown:
        raise ValidationError(
            f"Invalid status '{unknown[0]}'",
            {"allowed": list(DraftStatus.ALL)},
        )
    return list(statuses)


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, set())


def transition(draft: Draft, new_status: str):
    """Move a loaded draft to ``new_status``, refusing moves the lifecycle forbids."""
    if not can_transition(draft.status, new_status):
        raise InvalidState(
            f"Cannot move a {draft.status} post to {new_status}",
            {"status": draft.status, "requested": new_status},
        )
    draft.status = new_status


class DraftStore:
    """Draft persistence and lifecycle rules for one request."""

    def __init__(self, db: Session):
        self.db = db

    # ============================================================
    # READS
    # ============================================================

    def get(self, draft_id: int) -> Draft:
        draft = self.db.query(Draft).filter(Draft.id == draft_id).first()
        if not draft:
            raise NotFound("Draft not found", {"id": draft_id})
        return draft

    def get_owned(self, ctx: RequestContext, draft_id: int, action: str = "edit") -> Draft:
        draft = self.get(draft_id)
        if draft.author_id != ctx.user_id:
            raise Forbidden(f"You can only {action} your own drafts")
        return draft

    def list(self, ctx: RequestContext, status: Optional[str] = None) -> List[Draft]:
        query = self.db.query(Draft).filter(Draft.author_id == ctx.user_id)
        if status:
            check_statuses([status])
            query = query.filter(Draft.status == status)
        return query.order_by(Draft.updated_at.desc(), Draft.id.desc()).all()

    def calendar(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        statuses: Optional[Iterable[str]] = None,
    ) -> List[Draft]:
        """Organization-wide view: scheduled drafts by schedule, the rest by creation time."""
        query = self.db.query(Draft)

        scheduled_in_range = [Draft.scheduled_at.isnot(None)]
        unscheduled_in_range = [Draft.scheduled_at.is_(None)]
        if start:
            scheduled_in_range.append(Draft.scheduled_at >= start)
            unscheduled_in_range.append(Draft.created_at >= start)
        if end:
            scheduled_in_range.append(Draft.scheduled_at <= end)
            unscheduled_in_range.append(Draft.created_at <= end)
        if start or end:
            query = query.filter(or_(and_(*scheduled_in_range), and_(*unscheduled_in_range)))

        statuses = check_statuses([s for s in (statuses or []) if s])
        if statuses:
            query = query.filter(Draft.status.in_(statuses))

        return query.order_by(
            Draft.scheduled_at.is_(None),
            Draft.scheduled_at.asc(),
            Draft.created_at.asc(),
        ).all()

    # ============================================================
    # AUTHORING
    # ============================================================

    def create(
        self,
        ctx: RequestContext,
        text_content: Optional[str] = None,
        media_urls: Optional[List[str]] = None,
        link_url: Optional[str] = None,
        target_platforms: Optional[List[str]] = None,
        target_accounts: Optional[List[int]] = None,
        scheduled_at: Optional[datetime] = None,
    ) -> Draft:
        require_content(text_content, media_urls)

        draft = Draft(
            author_id=ctx.user_id,
            text_content=text_content or None,
            media_urls=list(media_urls or []),
            link_url=link_url or None,
            target_platforms=normalize_platforms(target_platforms),
            target_accounts=list(target_accounts or []),
            scheduled_at=as_utc(scheduled_at),
            status=S.SCHEDULED if is_future(scheduled_at) else S.DRAFT,
        )
        self.db.add(draft)
        self.db.commit()
        self.db.refresh(draft)
        publish_logger.info("Draft created", draft_id=draft.id, status=draft.status, author_id=ctx.user_id)
        return draft

    def update(self, ctx: RequestContext, draft_id: int, changes: Dict[str, Any]) -> Draft:
        """Apply the supplied fields; absent keys are left untouched."""
        draft = self.get_owned(ctx, draft_id, "edit")

        if draft.status in S.LOCKED:
            raise InvalidState("Cannot edit a published or publishing post", {"status": draft.status})
        if draft.status == S.SCHEDULED and draft.upload_job_ref:
            raise InvalidState(
                "This post was already handed to the publishing service and can no longer be edited",
                {"status": draft.status},
            )

        for key in CONTENT_FIELDS:
            if key not in changes:
                continue
            value = changes[key]
            if key == "target_platforms":
                value = normalize_platforms(value)
            elif key in ("media_urls", "target_accounts"):
                value = list(value or [])
            else:
                value = value or None
            setattr(draft, key, value)

        require_content(draft.text_content, draft.media_urls)

        was_failed = draft.status == S.FAILED
        reschedulable = draft.status in (S.DRAFT, S.SCHEDULED, S.FAILED)
        if "scheduled_at" in changes:
            scheduled_at = as_utc(changes["scheduled_at"])
            draft.scheduled_at = scheduled_at
            if reschedulable and is_future(scheduled_at):
                transition(draft, S.SCHEDULED)
            elif scheduled_at is None and draft.status == S.SCHEDULED:
                transition(draft, S.DRAFT)

        if was_failed:
            if draft.status == S.FAILED:
                transition(draft, S.SCHEDULED if is_future(draft.scheduled_at) else S.DRAFT)
            draft.upload_job_ref = None
            draft.upstream_state = None
            draft.reconciled_at = None

        draft.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(draft)
        return draft

    def delete(self, ctx: RequestContext, draft_id: int):
        draft = self.get_owned(ctx, draft_id, "delete")
        if draft.status == S.PUBLISHING:
            raise InvalidState("Cannot delete a post that is currently publishing", {"status": draft.status})

        self.db.delete(draft)
        self.db.commit()
        publish_logger.info("Draft deleted", draft_id=draft_id, author_id=ctx.user_id)

    # ============================================================
    # DISPATCH CLAIM
    # ============================================================

    def mark_publishing(self, draft_id: int) -> bool:
        """Claim a dispatchable draft with a row-scoped conditional update.

        Committed immediately so a concurrent dispatch of the same draft sees
        ``publishing`` and backs off. Returns False if the claim was lost.
        """
        claimed = (
            self.db.query(Draft)
            .filter(
                Draft.id == draft_id,
                Draft.status.in_(S.DISPATCHABLE),
                Draft.upload_job_ref.is_(None),
            )
            .update(
                {Draft.status: S.PUBLISHING, Draft.updated_at: utcnow()},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return claimed == 1
