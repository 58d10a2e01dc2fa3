"""Direct notification delivery endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException

from src.coaching.sync.audit import AuditCategory
from src.dependencies import Services
from src.models.coaching import NotifyRequest

router = APIRouter(prefix="/notify", tags=["notify"])


@router.post("")
async def send_notification(body: NotifyRequest, services: Services) -> Any:
    if not body.driver_id or not body.message:
        raise HTTPException(status_code=400, detail="driver_id and message are required")

    result = await services.dispatcher.send(body.driver_id, body.message)
    if not result.ok:
        services.audit_log.append(
            f"Direct notification failed ({result.status}): {result.error_message}",
            body.driver_id,
            AuditCategory.DELIVERY_FAILED,
        )
        raise HTTPException(
            status_code=result.status if result.status >= 400 else 502,
            detail=result.to_dict(),
        )

    services.audit_log.append(
        "Direct notification sent", body.driver_id, AuditCategory.DELIVERED
    )
    return {"success": True, "data": result.body}
