"""API routes for due-notification settings, permission and the inbox."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from ..calendar.config import CalendarConfigService
from ..schemas.notifications import DueNotificationConfig, DueNotificationConfigUpdate
from ..services.notifications import (
    DueNotificationService,
    InboxNotificationHost,
    NotificationPermission,
)
from ..tasks.store import TaskState
from .calendar import get_calendar_config_service, get_task_state

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


class PermissionPayload(BaseModel):
    permission: NotificationPermission


def get_notification_service(request: Request) -> DueNotificationService:
    service = getattr(request.app.state, "notification_service", None)
    if service is None:  # pragma: no cover - defensive
        raise RuntimeError("Notification service is not configured")
    return service


def _inbox(service: DueNotificationService) -> InboxNotificationHost:
    host = service.host
    if not isinstance(host, InboxNotificationHost):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification inbox is not available for this host",
        )
    return host


@router.get("/config", response_model=DueNotificationConfig)
async def read_notification_config(
    service: DueNotificationService = Depends(get_notification_service),
) -> DueNotificationConfig:
    return service.config


@router.put("/config", response_model=DueNotificationConfig)
async def update_notification_config(
    payload: DueNotificationConfigUpdate,
    service: DueNotificationService = Depends(get_notification_service),
) -> DueNotificationConfig:
    return await service.update_config(payload)


@router.get("/permission")
async def read_permission(
    service: DueNotificationService = Depends(get_notification_service),
) -> dict[str, str]:
    return {"permission": service.host.current_permission().value}


@router.post("/permission/request")
async def request_permission(
    service: DueNotificationService = Depends(get_notification_service),
) -> dict[str, str]:
    permission = await service.request_permission()
    return {"permission": permission.value}


@router.put("/permission")
async def report_permission(
    payload: PermissionPayload,
    service: DueNotificationService = Depends(get_notification_service),
) -> dict[str, str]:
    """Record the permission a client obtained from its own notification facility."""
    _inbox(service).set_permission(payload.permission)
    return {"permission": payload.permission.value}


@router.get("/inbox")
async def read_inbox(
    service: DueNotificationService = Depends(get_notification_service),
) -> dict[str, list[dict[str, Any]]]:
    return {"notifications": [entry.to_dict() for entry in _inbox(service).pending()]}


@router.delete("/inbox/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def dismiss_notification(
    notification_id: int,
    service: DueNotificationService = Depends(get_notification_service),
) -> None:
    if not _inbox(service).dismiss(notification_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        )


@router.post("/scan")
async def scan_notifications(
    service: DueNotificationService = Depends(get_notification_service),
    state: TaskState = Depends(get_task_state),
    calendar_config: CalendarConfigService = Depends(get_calendar_config_service),
) -> dict[str, Any]:
    result = await service.scan(state.tasks, calendar_config.get_effective().timezone)
    return {
        "permission": result.permission.value,
        "delivered": result.delivered,
        "failed": result.failed,
        "error": result.persist_error,
    }


__all__ = ["router"]
