"""
Publish Dispatcher

Hands one draft to Upload-Post for fan-out publishing.

The draft is claimed (``publishing``) and committed before the submission
goes out, so two concurrent dispatches of the same draft cannot both submit.
Submission is asynchronous on Upload-Post's side: the outcome written here is
optimistic and is corrected later by the StatusReconciler.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import RequestContext
from ..config import Settings, get_settings
from ..exceptions import InvalidState, NoValidAccounts, UpstreamError, ValidationError
from ..logging_config import publish_logger
from ..models.connection import Connection
from ..models.draft import Draft, DraftStatus
from ..models.publish_result import PublishResult
from .accounts import AccountRegistry
from .clock import as_utc, is_future, utcnow
from .content import ContentShape, build_submit_request
from .drafts import DraftStore, require_content, transition
from .upload_post import UploadPostClient, extract_job_ref, require_client


@dataclass
class DispatchOutcome:
    draft: Draft
    job_ref: Optional[str]
    shape: ContentShape
    results: List[PublishResult] = field(default_factory=list)

    @property
    def scheduled(self) -> bool:
        return self.draft.status == DraftStatus.SCHEDULED


class PublishDispatcher:
    """Validates, claims and submits drafts."""

    def __init__(
        self,
        db: Session,
        client: Optional[UploadPostClient],
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.client = client
        self.settings = settings or get_settings()
        self.drafts = DraftStore(db)
        self.accounts = AccountRegistry(db)

    def _check_eligible(self, draft: Draft):
        if draft.status not in DraftStatus.DISPATCHABLE:
            raise InvalidState(
                "This draft is already published or publishing"
                if draft.status in DraftStatus.LOCKED
                else f"A {draft.status} draft cannot be published",
                {"status": draft.status},
            )
        if draft.upload_job_ref:
            raise InvalidState("This draft was already submitted for publishing", {"status": draft.status})

    def _next_attempt(self, draft_id: int) -> int:
        latest = (
            self.db.query(func.max(PublishResult.attempt))
            .filter(PublishResult.draft_id == draft_id)
            .scalar()
        )
        return (latest or 0) + 1

    def dispatch(self, ctx: RequestContext, draft_id: int) -> DispatchOutcome:
        draft = self.drafts.get_owned(ctx, draft_id, "publish")
        self._check_eligible(draft)

        if not draft.target_platforms:
            raise ValidationError("No target platforms selected", {"field": "target_platforms"})
        require_content(draft.text_content, draft.media_urls)

        accounts = self.accounts.resolve_targets(draft.author_id, list(draft.target_accounts or []))
        if not accounts:
            raise NoValidAccounts(
                "No valid social accounts selected. Connect an account before publishing.",
                {"target_accounts": list(draft.target_accounts or [])},
            )

        client = require_client(self.client)

        if not self.drafts.mark_publishing(draft.id):
            raise InvalidState("This draft is already being published", {"id": draft.id})
        self.db.refresh(draft)

        try:
            return self._submit(draft, accounts, client)
        except UpstreamError:
            raise
        except Exception as e:
            self._abandon_claim(draft.id, e)
            raise

    def _submit(self, draft: Draft, accounts: List[Connection], client: UploadPostClient) -> DispatchOutcome:
        scheduled_at = as_utc(draft.scheduled_at)
        future = is_future(scheduled_at)
        request = build_submit_request(
            user=accounts[0].external_username,
            platforms=draft.target_platforms,
            text_content=draft.text_content,
            media_urls=draft.media_urls,
            link_url=draft.link_url,
            default_title=self.settings.default_post_title,
            scheduled_date=scheduled_at if future else None,
        )
        attempt = self._next_attempt(draft.id)
        log = publish_logger.bind(draft_id=draft.id, attempt=attempt)

        log.info(
            "Dispatching draft",
            shape=request.shape.value,
            platforms=request.platforms,
            accounts=[account.id for account in accounts],
        )

        try:
            payload = client.submit(request)
            job_ref = extract_job_ref(payload)
            if not job_ref:
                raise UpstreamError("Upload-Post did not return a job id", payload=payload)
        except UpstreamError as e:
            self._record_failure(draft, accounts, attempt, e, log)
            raise

        draft.upload_job_ref = job_ref
        draft.upstream_state = None
        draft.reconciled_at = None
        if future:
            transition(draft, DraftStatus.SCHEDULED)
        elif self.settings.optimistic_publish:
            transition(draft, DraftStatus.PUBLISHED)
            draft.published_at = utcnow()

        results = [
            PublishResult(
                draft_id=draft.id,
                platform=account.platform,
                account_id=account.id,
                attempt=attempt,
                success=True,
                raw_response=payload,
            )
            for account in accounts
        ]
        self.db.add_all(results)
        self.db.commit()
        self.db.refresh(draft)

        log.info("Draft submitted", job_ref=job_ref, status=draft.status)
        return DispatchOutcome(draft=draft, job_ref=job_ref, shape=request.shape, results=results)

    def _record_failure(self, draft: Draft, accounts: List[Connection], attempt: int, error: UpstreamError, log):
        transition(draft, DraftStatus.FAILED)
        for account in accounts:
            self.db.add(PublishResult(
                draft_id=draft.id,
                platform=account.platform,
                account_id=account.id,
                attempt=attempt,
                success=False,
                error_message=error.message,
                raw_response=error.payload if isinstance(error.payload, dict) else None,
            ))
            self.db.query(Connection).filter(Connection.id == account.id).update(
                {Connection.last_error_message: error.message}, synchronize_session=False
            )
        self.db.commit()
        self.db.refresh(draft)
        log.error(
            "Draft submission failed",
            error=error,
            upstream_status=error.upstream_status,
        )

    def _abandon_claim(self, draft_id: int, error: Exception):
        """Release a claimed draft after an unexpected failure so it is not left in ``publishing``."""
        self.db.rollback()
        self.db.query(Draft).filter(
            Draft.id == draft_id,
            Draft.status == DraftStatus.PUBLISHING,
        ).update(
            {Draft.status: DraftStatus.FAILED, Draft.updated_at: utcnow()},
            synchronize_session=False,
        )
        self.db.commit()
        publish_logger.error("Dispatch aborted after claim", error=error, draft_id=draft_id)
