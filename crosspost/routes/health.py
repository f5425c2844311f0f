"""
Crosspost Health Check Routes
Liveness, readiness and a detailed status for monitoring
"""
from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from datetime import datetime, timezone
import sys
import psutil
from typing import Dict, Any
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import get_db
from ..models.draft import Draft

router = APIRouter(prefix="/api/health", tags=["health"])

START_TIME = datetime.now(timezone.utc)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_uptime() -> str:
    """Get system uptime as human-readable string"""
    delta = datetime.now(timezone.utc) - START_TIME
    hours, remainder = divmod(delta.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)

    if delta.days > 0:
        return f"{delta.days}d {hours}h {minutes}m"
    elif hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    else:
        return f"{minutes}m {seconds}s"


def check_database(db: Session) -> Dict[str, Any]:
    """Check database connectivity and draft counts per status"""
    try:
        db.execute(text("SELECT 1"))
        counts = dict(
            db.query(Draft.status, func.count(Draft.id)).group_by(Draft.status).all()
        )
        return {
            "status": "healthy",
            "drafts_by_status": counts,
        }
    except SQLAlchemyError as e:
        return {
            "status": "unhealthy",
            "error": str(e),
        }


def check_upload_post() -> Dict[str, Any]:
    """Upload-Post is only reachable when an API key is configured"""
    settings = get_settings()
    if not settings.upload_post_api_key:
        return {"status": "warning", "error": "UPLOAD_POST_API_KEY not configured"}
    return {"status": "healthy", "base_url": settings.upload_post_api_url}


def check_system() -> Dict[str, Any]:
    """Check system resources"""
    cpu_percent = psutil.cpu_percent(interval=0.1)
    memory = psutil.virtual_memory()

    return {
        "status": "healthy" if memory.percent < 90 else "warning",
        "cpu_percent": cpu_percent,
        "memory_percent": memory.percent,
        "memory_available_gb": round(memory.available / (1024**3), 2),
        "python_version": sys.version.split()[0],
    }


# ============================================================
# ROUTES
# ============================================================

@router.get("")
@router.get("/live")
def health_live():
    """
    Liveness probe - is the service running?
    """
    return {
        "ok": True,
        "status": "alive",
        "uptime": get_uptime(),
        "timestamp": _now(),
    }


@router.get("/ready")
def health_ready(db: Session = Depends(get_db)):
    """
    Readiness probe - can we reach the database?
    """
    database = check_database(db)
    ready = database["status"] == "healthy"

    return {
        "ok": ready,
        "status": "ready" if ready else "not_ready",
        "checks": {
            "database": database["status"],
            "upload_post": check_upload_post()["status"],
        },
        "timestamp": _now(),
    }


@router.get("/full")
def health_full(db: Session = Depends(get_db)):
    """
    Full health check - detailed status of all components.
    """
    database = check_database(db)
    upload_post = check_upload_post()
    system = check_system()

    statuses = [database["status"], upload_post["status"], system["status"]]
    if "unhealthy" in statuses:
        overall = "unhealthy"
    elif "warning" in statuses:
        overall = "degraded"
    else:
        overall = "healthy"

    return {
        "ok": overall == "healthy",
        "status": overall,
        "uptime": get_uptime(),
        "started_at": START_TIME.isoformat(),
        "checks": {
            "database": database,
            "upload_post": upload_post,
            "system": system,
        },
        "timestamp": _now(),
    }


@router.get("/metrics", response_class=PlainTextResponse)
def health_metrics(db: Session = Depends(get_db)):
    """
    Prometheus-style metrics endpoint.
    """
    database = check_database(db)
    system = check_system()

    metrics = []

    uptime_seconds = (datetime.now(timezone.utc) - START_TIME).total_seconds()
    metrics.append(f"crosspost_uptime_seconds {uptime_seconds}")
    metrics.append(f"crosspost_cpu_percent {system['cpu_percent']}")
    metrics.append(f"crosspost_memory_percent {system['memory_percent']}")

    for status, count in database.get("drafts_by_status", {}).items():
        metrics.append(f'crosspost_drafts{{status="{status}"}} {count}')

    metrics.append(f"crosspost_health_database {1 if database['status'] == 'healthy' else 0}")

    return "\n".join(metrics)
