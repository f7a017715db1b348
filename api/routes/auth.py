"""
Endpoints de sesión usando Supabase Auth.

Este módulo maneja:
- GET /api/v1/auth/session: Usuario de la sesión y su perfil (o anónimo)
- POST /api/v1/auth/sign-out: Cierre de sesión

El login en sí lo hace el navegador contra Supabase Auth; acá solo se usa el
access token que manda en el header Authorization.
"""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from supabase import Client

from gitgrub.backend import NotFoundError, sign_out
from gitgrub.notifications import drop_notification_center
from gitgrub.profiles import get_own_profile

from ..dependencies import get_backend, get_current_user_id, get_optional_user_id, http_error
from ..models.requests import UserProfileResponse
from .images import release_profile_images

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


class SessionResponse(BaseModel):
    """Estado de la sesión: usuario autenticado y su fila `users`."""
    authenticated: bool
    user_id: Optional[str] = None
    profile: Optional[UserProfileResponse] = None


@router.get("/session", response_model=SessionResponse)
def get_session(
    user_id: Optional[str] = Depends(get_optional_user_id),
    client: Client = Depends(get_backend),
):
    """
    Devuelve la sesión actual.

    Un token ausente o inválido no es un error: la sesión es anónima. Si el
    usuario no tiene fila en `users` se devuelve sin perfil.
    """
    if not user_id:
        return SessionResponse(authenticated=False)

    try:
        profile = get_own_profile(client, user_id)
    except NotFoundError:
        logger.warning(f"Usuario {user_id} sin fila en users")
        return SessionResponse(authenticated=True, user_id=user_id)
    except Exception as e:
        raise http_error(e) from e

    return SessionResponse(
        authenticated=True,
        user_id=user_id,
        profile=UserProfileResponse(**asdict(profile)),
    )


@router.post("/sign-out", status_code=204)
def sign_out_user(
    user_id: str = Depends(get_current_user_id),
    client: Client = Depends(get_backend),
):
    """
    Cierra la sesión en Supabase Auth.

    Si falla, el error queda como notificación para el usuario. Si sale bien
    se liberan las imágenes y notificaciones del usuario en memoria.
    """
    try:
        sign_out(client)
    except Exception as e:
        raise http_error(e, user_id, notify="Sign out failed") from e

    release_profile_images(user_id)
    drop_notification_center(user_id)
    logger.info(f"Sesión cerrada: {user_id}")
