"""
gitgrub.backend
===============

Acceso al backend-as-a-service (Supabase).

Todo el estado durable (recetas, versiones, likes, follows, usuarios) y la
lógica de negocio (contadores, ownership, borrados en cascada, numeración de
versiones) viven en Supabase. Este módulo solo:

- Crea clientes del SDK con el token del usuario (RLS sigue aplicando).
- Ejecuta queries/RPCs y traduce los errores del SDK a `BackendError`.
- Resuelve la sesión (user id) a partir de un access token.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import jwt  # pyjwt
from postgrest.exceptions import APIError
from supabase import Client, ClientOptions, create_client

from .config import get_settings

logger = logging.getLogger(__name__)


class BackendError(RuntimeError):
    """Error devuelto por Supabase (tabla, RPC o storage)."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class NotFoundError(LookupError):
    """La fila/RPC pedida no existe (o RLS no la deja ver)."""


def get_client(access_token: Optional[str] = None) -> Client:
    """
    Crea un cliente de Supabase.

    Args:
        access_token: Token JWT del usuario. Si se pasa, todas las llamadas
            (tablas, RPCs, storage) se hacen en nombre de ese usuario.

    Raises:
        RuntimeError: Si SUPABASE_URL o SUPABASE_ANON_KEY no están configuradas.
    """
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_anon_key:
        raise RuntimeError("SUPABASE_URL / SUPABASE_ANON_KEY no están configuradas en el .env")

    if access_token:
        options = ClientOptions(headers={"Authorization": f"Bearer {access_token}"})
        return create_client(settings.supabase_url, settings.supabase_anon_key, options=options)
    return create_client(settings.supabase_url, settings.supabase_anon_key)


def execute(query: Any) -> Any:
    """
    Ejecuta un query builder (tabla o RPC) y devuelve `data`.

    Raises:
        BackendError: Si PostgREST devuelve un error.
    """
    try:
        response = query.execute()
    except APIError as e:
        logger.warning(f"Error de Supabase: {e.message} (code={e.code})")
        raise BackendError(e.message or "Backend request failed", code=e.code) from e
    return response.data


def decode_access_token(token: str) -> dict:
    """
    Decodifica el access token de Supabase.

    Si `SUPABASE_JWT_SECRET` está configurado se verifica la firma (HS256) y la
    audiencia `authenticated`; si no, solo se decodifica para leer `sub`.

    Raises:
        jwt.PyJWTError: Si el token es inválido.
    """
    settings = get_settings()
    if settings.supabase_jwt_secret:
        return jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=["HS256"],
            audience="authenticated",
        )
    return jwt.decode(token, options={"verify_signature": False})


def session_user_id(token: Optional[str]) -> Optional[str]:
    """
    Devuelve el id del usuario de la sesión, o None si no hay sesión válida.

    Equivalente a `auth.getSession()` del lado del navegador: un token ausente
    o inválido significa "sin sesión", no un error.
    """
    if not token:
        return None
    try:
        claims = decode_access_token(token)
    except jwt.PyJWTError as e:
        logger.info(f"Token inválido, se trata como anónimo: {e}")
        return None
    return claims.get("sub")


def require_user_id(token: Optional[str]) -> str:
    """
    Igual que `session_user_id` pero exige sesión.

    Raises:
        PermissionError: "Sign in required" si no hay sesión.
    """
    uid = session_user_id(token)
    if not uid:
        raise PermissionError("Sign in required")
    return uid


def sign_out(client: Client) -> None:
    """Cierra la sesión del usuario en Supabase Auth."""
    try:
        client.auth.sign_out()
    except Exception as e:
        raise BackendError(str(e)) from e
