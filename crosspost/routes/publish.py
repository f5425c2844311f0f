"""
Publish routes: hand a draft to Upload-Post and poll its outcome.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from typing import Optional

from ..database import get_db
from ..auth import RequestContext, get_request_context
from ..config import get_settings
from ..exceptions import ValidationError
from ..limiter import limiter
from ..publishing.clock import isoformat
from ..publishing.dispatcher import PublishDispatcher
from ..publishing.reconciler import StatusReconciler
from ..publishing.upload_post import UploadPostClient, get_upload_post_client
from ..responses import success
from ..schemas.social import PublishRequest, result_to_dict

settings = get_settings()

router = APIRouter(prefix="/api/social", tags=["social"])


@router.post("/publish")
@limiter.limit(settings.publish_rate_limit)
def publish_draft(
    request: Request,
    body: PublishRequest,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    client: Optional[UploadPostClient] = Depends(get_upload_post_client),
):
    """Submit a draft for publishing on every target platform."""
    if body.draft_id is None:
        raise ValidationError("Draft ID is required", {"field": "draft_id"})

    outcome = PublishDispatcher(db, client).dispatch(ctx, body.draft_id)
    return success(
        {
            "draft_id": outcome.draft.id,
            "job_ref": outcome.job_ref,
            "status": outcome.draft.status,
            "shape": outcome.shape.value,
            "results": [result_to_dict(r) for r in outcome.results],
        },
        message="Post scheduled successfully" if outcome.scheduled else "Post is being published",
    )


@router.get("/status/{draft_id}")
def publish_status(
    draft_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    client: Optional[UploadPostClient] = Depends(get_upload_post_client),
):
    """Current publish status; polls Upload-Post until the outcome is confirmed."""
    outcome = StatusReconciler(db, client).reconcile(ctx, draft_id)
    return success(
        {
            "draft_id": draft_id,
            "status": outcome.status,
            "published_at": isoformat(outcome.published_at),
            "upstream_state": outcome.upstream_state,
            "results": [result_to_dict(r) for r in outcome.results],
        },
        message=outcome.message,
    )
