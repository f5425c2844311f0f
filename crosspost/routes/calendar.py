"""
Calendar route: organization-wide view of drafts by schedule.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime

from ..database import get_db
from ..auth import RequestContext, get_request_context
from ..publishing.clock import as_utc
from ..publishing.drafts import DraftStore
from ..responses import success
from ..schemas.social import calendar_entry

router = APIRouter(prefix="/api/social", tags=["social"])


@router.get("/calendar")
def get_calendar(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    status: Optional[str] = Query(None, description="Comma-separated statuses"),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    """All drafts in the window; unscheduled drafts are placed by creation time."""
    statuses = [s.strip() for s in status.split(",")] if status else None
    drafts = DraftStore(db).calendar(as_utc(start), as_utc(end), statuses)
    return success([calendar_entry(d) for d in drafts], meta={"count": len(drafts)})
