"""REST API endpoints for sheetaudit.

Business logic is delegated to AuditLogger.

Endpoints:
- POST /api/notifications/edit    - cell or range edit
- POST /api/notifications/change  - structural change
- POST /api/notifications/open    - document opened (baseline capture)
- GET  /api/health                - Health check
- GET  /api/health/ready          - Readiness check with outcome counters
"""

import secrets

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from sheetaudit.config import Settings
from sheetaudit.notifications import (
    ChangeNotification,
    EditNotification,
    OpenNotification,
)
from sheetaudit.service import AuditLogger

TOKEN_HEADER = "X-Sheetaudit-Token"

router = APIRouter()


def get_audit_logger(request: Request) -> AuditLogger:
    """Dependency to get the AuditLogger from app state."""
    return request.app.state.audit_logger


def get_app_settings(request: Request) -> Settings:
    """Dependency to get the Settings the app was created with."""
    return request.app.state.settings


def verify_token(
    settings: Settings = Depends(get_app_settings),
    token: str | None = Header(None, alias=TOKEN_HEADER),
) -> None:
    """Reject notifications without the shared secret, when one is configured."""
    if not settings.webhook_secret:
        return
    if token is None or not secrets.compare_digest(token, settings.webhook_secret):
        raise HTTPException(status_code=401, detail="Invalid notification token")


# =============================================================================
# Health Endpoints
# =============================================================================


@router.get("/health")
async def health_check() -> dict:
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "sheetaudit"}


@router.get("/health/ready")
async def readiness_check(
    settings: Settings = Depends(get_app_settings),
    audit: AuditLogger = Depends(get_audit_logger),
) -> dict:
    """Readiness check for Cloud Run."""
    return {
        "status": "ready",
        "service": "sheetaudit",
        "environment": settings.environment,
        "mode": "multi-document" if settings.is_multi_document else "single-document",
        "outcomes": dict(audit.outcomes),
    }


# =============================================================================
# Notification Endpoints
# =============================================================================


@router.post("/notifications/edit", dependencies=[Depends(verify_token)])
async def edit_notification(
    notification: EditNotification,
    audit: AuditLogger = Depends(get_audit_logger),
) -> dict:
    """Record a cell or range edit."""
    result = await audit.on_edit(notification)
    return result.to_dict()


@router.post("/notifications/change", dependencies=[Depends(verify_token)])
async def change_notification(
    notification: ChangeNotification,
    audit: AuditLogger = Depends(get_audit_logger),
) -> dict:
    """Record a structural change."""
    result = await audit.on_change(notification)
    return result.to_dict()


@router.post("/notifications/open", dependencies=[Depends(verify_token)])
async def open_notification(
    notification: OpenNotification,
    audit: AuditLogger = Depends(get_audit_logger),
) -> dict:
    """Capture the structure baseline of an opened document."""
    result = await audit.on_open(notification)
    return result.to_dict()
