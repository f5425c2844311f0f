"""
Social account routes: listing, manual connections, disconnects, sync with
Upload-Post and the hosted connect flow.
"""
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session
from typing import Optional

from ..database import get_db
from ..auth import RequestContext, get_request_context
from ..config import get_settings
from ..exceptions import ValidationError
from ..limiter import limiter
from ..publishing.accounts import AccountRegistry, resolve_permissions
from ..publishing.sync import SyncEngine
from ..publishing.upload_post import UploadPostClient, get_upload_post_client
from ..responses import success
from ..schemas.social import (
    ConnectionCreate,
    DisconnectRequest,
    SyncRequest,
    ConnectStartRequest,
    connection_to_dict,
)

settings = get_settings()

router = APIRouter(prefix="/api/social", tags=["social"])


@router.get("/accounts")
def list_accounts(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    """Connections the caller can publish to, plus what they may connect."""
    connections = AccountRegistry(db).list_accessible(ctx)
    return success({
        "accounts": [connection_to_dict(c) for c in connections],
        "permissions": resolve_permissions(ctx.role).to_dict(),
        "role": ctx.role,
    })


@router.post("/accounts")
def connect_account(
    body: ConnectionCreate,
    response: Response,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    """Register a connection by hand. 201 when new, 200 when it already existed."""
    connection, was_created = AccountRegistry(db).connect(ctx, **body.model_dump())
    response.status_code = 201 if was_created else 200
    return success(
        connection_to_dict(connection),
        message="Account connected" if was_created else "Account updated",
    )


@router.post("/accounts/disconnect")
def disconnect_account(
    body: DisconnectRequest,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    if body.connection_id is None:
        raise ValidationError("Connection ID is required", {"field": "connection_id"})

    connection = AccountRegistry(db).disconnect(body.connection_id, ctx)
    return success(connection_to_dict(connection), message="Account disconnected")


@router.post("/sync-accounts")
@limiter.limit(settings.sync_rate_limit)
def sync_accounts(
    request: Request,
    body: Optional[SyncRequest] = None,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    client: Optional[UploadPostClient] = Depends(get_upload_post_client),
):
    """Mirror the platforms linked on Upload-Post into local connections."""
    ownership = body.ownership if body else None
    report = SyncEngine(db, client).sync(ctx, ownership)
    return success(report.to_dict())


@router.get("/sync-accounts")
def sync_status(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    client: Optional[UploadPostClient] = Depends(get_upload_post_client),
):
    return success(SyncEngine(db, client).status(ctx))


@router.post("/connect-start")
def connect_start(
    request: Request,
    body: ConnectStartRequest,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    client: Optional[UploadPostClient] = Depends(get_upload_post_client),
):
    """Start the Upload-Post hosted flow for linking platform accounts."""
    result = SyncEngine(db, client).start_connect(
        ctx,
        ownership=body.ownership,
        platforms=body.platforms,
        redirect_base=str(request.base_url),
    )
    return success(result)
