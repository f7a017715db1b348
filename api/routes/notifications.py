"""
Endpoints de notificaciones transitorias del usuario.

Este módulo maneja:
- GET /api/v1/notifications: Notificaciones vigentes
- POST /api/v1/notifications: Agregar una notificación
- DELETE /api/v1/notifications/{notification_id}: Descartar una notificación
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from gitgrub.notifications import get_notification_center

from ..dependencies import get_current_user_id
from ..models.requests import NotificationRequest, NotificationResponse

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationResponse])
def list_notifications(user_id: str = Depends(get_current_user_id)):
    """Notificaciones del usuario que todavía no expiraron."""
    return [
        NotificationResponse(
            id=n.id,
            type=n.type,
            message=n.message,
            description=n.description,
            duration_ms=n.duration_ms,
        )
        for n in get_notification_center(user_id).active()
    ]


@router.post("", status_code=201)
def create_notification(
    request: NotificationRequest,
    user_id: str = Depends(get_current_user_id),
):
    """Agrega una notificación (ej: "Link copied" desde el front)."""
    notification_id = get_notification_center(user_id).show(
        request.type.value,
        request.message,
        description=request.description,
        duration_ms=request.duration_ms,
    )
    return {"id": notification_id}


@router.delete("/{notification_id}", status_code=204)
def dismiss_notification(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
):
    """
    Descarta una notificación.

    Raises:
        404: Si no existe (o ya expiró)
    """
    if not get_notification_center(user_id).remove(notification_id):
        raise HTTPException(status_code=404, detail=f"Notificación {notification_id} no encontrada")
