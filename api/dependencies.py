"""
Dependencias de FastAPI para sesión y acceso al backend.

Este módulo proporciona dependencias reutilizables para:
- Extraer el access token de Supabase del header Authorization
- Resolver el usuario de la sesión (opcional u obligatorio)
- Crear el cliente de Supabase en nombre del usuario
- Traducir los errores del core a HTTPException (y avisar al usuario)
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException
from supabase import Client

from gitgrub.backend import BackendError, get_client, session_user_id
from gitgrub.notifications import get_notification_center
from gitgrub.social import ToggleBusyError

import logging

logger = logging.getLogger(__name__)


async def get_access_token(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> Optional[str]:
    """
    Obtiene el access token desde el header Authorization.

    Un header ausente significa "sin sesión" (anónimo). Un header con formato
    distinto a "Bearer <token>" es un error del cliente.

    Raises:
        HTTPException: 401 si el header no tiene formato Bearer
    """
    if not authorization:
        return None

    if not authorization.startswith("Bearer "):
        logger.warning(f"Authorization header no tiene formato Bearer: {authorization[:20]}...")
        raise HTTPException(
            status_code=401,
            detail="Invalid Authorization header format. Expected 'Bearer <token>'"
        )

    return authorization.replace("Bearer ", "").strip() or None


async def get_optional_user_id(
    token: Optional[str] = Depends(get_access_token),
) -> Optional[str]:
    """ID del usuario de la sesión, o None si es anónimo o el token no es válido."""
    return session_user_id(token)


async def get_current_user_id(
    token: Optional[str] = Depends(get_access_token),
) -> str:
    """
    Obtiene el ID del usuario actual desde el token JWT.

    Raises:
        HTTPException: 401 si no hay token o no contiene `sub`
    """
    if not token:
        logger.warning("Authorization header no presente")
        raise HTTPException(status_code=401, detail="Missing Authorization header")

    user_id = session_user_id(token)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token: no user ID found")
    return user_id


def get_backend(token: Optional[str] = Depends(get_access_token)) -> Client:
    """
    Cliente de Supabase para el request.

    Con token, las llamadas se hacen como el usuario (RLS aplica); sin token,
    como anónimo.

    Raises:
        HTTPException: 500 si Supabase no está configurado
    """
    try:
        return get_client(token)
    except RuntimeError as e:
        logger.error(f"No se pudo crear el cliente de Supabase: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e


def http_error(e: Exception, user_id: Optional[str] = None, notify: Optional[str] = None) -> HTTPException:
    """
    Traduce una excepción del core a HTTPException.

    - LookupError (NotFoundError) -> 404
    - PermissionError -> 401 ("Sign in required") o 403
    - ValueError -> 400
    - ToggleBusyError -> 409
    - BackendError y el resto -> 500

    Si se pasa `notify` y hay usuario, además se agrega una notificación de
    error con el mensaje `notify` y el detalle del error como descripción.
    """
    if isinstance(e, LookupError):
        status = 404
    elif isinstance(e, PermissionError):
        status = 401 if str(e) in ("Sign in required", "Not signed in", "You must be signed in.") else 403
    elif isinstance(e, ValueError):
        status = 400
    elif isinstance(e, ToggleBusyError):
        status = 409
    else:
        status = 500

    if status == 500:
        logger.exception(f"Error interno: {e}")
    else:
        logger.info(f"Error {status}: {e}")

    if notify and user_id:
        get_notification_center(user_id).show("error", notify, description=str(e) or None)

    detail = str(e) if not isinstance(e, BackendError) else e.message
    return HTTPException(status_code=status, detail=detail or "Error interno")
