"""
Endpoints sociales: like de recetas y follow de usuarios.

Este módulo maneja:
- POST /api/v1/social/recipes/{recipe_id}/like: Toggle de like
- POST /api/v1/social/users/{user_id}/follow: Toggle de follow

El cliente manda el estado que está mostrando; el toggle se aplica de forma
optimista y, si el backend falla, se devuelve el error y el cliente conserva
el estado original. Un segundo toggle sobre el mismo par usuario/objeto
mientras el primero sigue en curso devuelve 409. Solo los toggles en curso
quedan registrados.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Set, Tuple

from fastapi import APIRouter, Depends
from supabase import Client

from gitgrub.recipes import invalidate_recipe_detail
from gitgrub.social import FollowToggle, LikeToggle, ToggleBusyError

from ..dependencies import get_backend, get_current_user_id, http_error
from ..models.requests import (
    FollowStateResponse,
    FollowToggleRequest,
    LikeStateResponse,
    LikeToggleRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/social", tags=["social"])

# Toggles en curso por (tipo, usuario, objeto), para detectar clicks concurrentes
_in_flight: Set[Tuple[str, str, str]] = set()
_in_flight_lock = threading.Lock()


@contextmanager
def _claim(kind: str, user_id: str, target_id: str) -> Iterator[None]:
    """Registra el toggle mientras dura el request; si ya hay uno en curso, 409."""
    key = (kind, user_id, target_id)
    with _in_flight_lock:
        if key in _in_flight:
            raise ToggleBusyError("Toggle already in progress")
        _in_flight.add(key)
    try:
        yield
    finally:
        with _in_flight_lock:
            _in_flight.discard(key)


@router.post("/recipes/{recipe_id}/like", response_model=LikeStateResponse)
def toggle_like(
    recipe_id: str,
    request: LikeToggleRequest,
    user_id: str = Depends(get_current_user_id),
    client: Client = Depends(get_backend),
):
    """
    Invierte el like del usuario sobre la receta.

    Returns:
        Estado nuevo (liked, contador, etiqueta y anuncio para lectores de pantalla)

    Raises:
        409: Si ya hay un toggle en curso
    """
    toggle = LikeToggle(client, recipe_id, liked=request.liked, count=request.count)
    try:
        with _claim("like", user_id, recipe_id):
            state = toggle.toggle(user_id)
    except Exception as e:
        raise http_error(e, user_id, notify="Could not update like") from e
    # liked_by_me del detalle cacheado ya no vale
    invalidate_recipe_detail(recipe_id)
    return LikeStateResponse(**state.as_dict())


@router.post("/users/{followee_id}/follow", response_model=FollowStateResponse)
def toggle_follow(
    followee_id: str,
    request: FollowToggleRequest,
    user_id: str = Depends(get_current_user_id),
    client: Client = Depends(get_backend),
):
    """
    Sigue / deja de seguir a un usuario.

    Si el backend devuelve el estado real, ese es el que se responde.

    Raises:
        403: Si el usuario intenta seguirse a sí mismo
        409: Si ya hay un toggle en curso
    """
    toggle = FollowToggle(
        client, followee_id, following=request.following, follower_count=request.follower_count
    )
    try:
        with _claim("follow", user_id, followee_id):
            state = toggle.toggle(user_id)
    except Exception as e:
        raise http_error(e, user_id, notify="Failed to update follow") from e
    return FollowStateResponse(**state.as_dict())
