"""
Draft routes: authoring posts before they are published.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from ..database import get_db
from ..auth import RequestContext, get_request_context
from ..exceptions import ValidationError
from ..publishing.drafts import DraftStore
from ..responses import success, created, updated, deleted
from ..schemas.social import DraftCreate, DraftUpdate, DraftDelete, draft_to_dict

router = APIRouter(prefix="/api/social", tags=["social"])


@router.get("/drafts")
def list_drafts(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    """List the current user's drafts, optionally filtered by status."""
    drafts = DraftStore(db).list(ctx, status)
    return success([draft_to_dict(d) for d in drafts], meta={"count": len(drafts)})


@router.get("/drafts/{draft_id}")
def get_draft(
    draft_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    draft = DraftStore(db).get_owned(ctx, draft_id, "view")
    return success(draft_to_dict(draft, include_results=True))


@router.post("/drafts", status_code=201)
def create_draft(
    body: DraftCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    """Create a draft; a future scheduled_at makes it scheduled."""
    draft = DraftStore(db).create(ctx, **body.model_dump())
    return created(draft_to_dict(draft), "Draft created")


@router.put("/drafts")
def update_draft(
    body: DraftUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    """Update the draft named by ``id`` in the body. Only sent fields change."""
    if body.id is None:
        raise ValidationError("Draft ID is required", {"field": "id"})

    changes = body.model_dump(exclude_unset=True)
    changes.pop("id", None)
    draft = DraftStore(db).update(ctx, body.id, changes)
    return updated(draft_to_dict(draft), "Draft updated")


@router.delete("/drafts")
def delete_draft(
    body: DraftDelete,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    if body.id is None:
        raise ValidationError("Draft ID is required", {"field": "id"})

    DraftStore(db).delete(ctx, body.id)
    return deleted("Draft deleted")
