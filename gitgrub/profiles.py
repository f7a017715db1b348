"""
gitgrub.profiles
================

Perfiles de usuario: vista pública (con estado de follow), perfil propio y
guardado de ajustes (nombre, username y fotos).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

from supabase import Client

from .backend import NotFoundError, execute
from .domain_models import Author, BaseUser, ProfileView, RecipeCard, UserProfile
from .mappers import base_user_to_postgres, postgres_user_to_profile, row_to_card
from .storage import FileStaging

logger = logging.getLogger(__name__)


@dataclass
class ProfilePage:
    """Perfil público + sus recetas."""
    user: ProfileView
    recipes: List[RecipeCard] = field(default_factory=list)
    is_me: bool = False


def get_profile_summary(client: Client, user_id: str) -> ProfileView:
    """
    Perfil + contadores + `followed_by_me` vía `rpc_profile_view`.

    Raises:
        NotFoundError: Si el usuario no existe.
    """
    rows = execute(client.rpc("rpc_profile_view", {"p_user_id": user_id}))
    if isinstance(rows, dict):
        rows = [rows]
    if not rows:
        raise NotFoundError("User not found")
    return ProfileView.from_row(rows[0])


def get_profile_view(client: Client, user_id: str, viewer_id: Optional[str] = None) -> ProfilePage:
    """
    Perfil público de `user_id`.

    Usa `rpc_profile_view` y la lista de recetas del usuario, más nuevas
    primero. Todas las tarjetas comparten el mismo autor.

    Raises:
        NotFoundError: Si el usuario no existe.
    """
    user = get_profile_summary(client, user_id)

    recipe_rows = execute(
        client.table("recipes")
        .select("id, title, tags, created_at, like_count, fork_count, version_count")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
    ) or []

    author = Author(id=user.id, display_name=user.display_name, avatar_photo=user.avatar_photo)
    return ProfilePage(
        user=user,
        recipes=[row_to_card(r, author) for r in recipe_rows],
        is_me=bool(viewer_id) and viewer_id == user.id,
    )


def get_own_profile(client: Client, user_id: str) -> UserProfile:
    """
    Fila `users` del usuario autenticado.

    Raises:
        NotFoundError: Si el usuario no tiene fila en `users`.
    """
    rows = execute(client.table("users").select("*").eq("id", user_id).limit(1))
    if not rows:
        raise NotFoundError("Profile not found")
    return postgres_user_to_profile(rows[0])


def update_settings(
    client: Client,
    user_id: str,
    form: BaseUser,
    staging: Optional[FileStaging] = None,
) -> UserProfile:
    """
    Guarda los ajustes del perfil.

    1) Procesa las imágenes pendientes (bajas y subidas).
    2) Mezcla las URLs resultantes en el formulario.
    3) Actualiza la fila `users` y devuelve el perfil refrescado.

    El staging se limpia siempre, haya error o no.
    """
    try:
        updated_photos = staging.process() if staging is not None else {}
        merged = replace(form, **updated_photos)

        payload = base_user_to_postgres(merged)
        logger.info(f"Actualizando perfil {user_id}: {sorted(payload)}")
        execute(client.table("users").update(payload).eq("id", user_id))
    finally:
        if staging is not None:
            staging.clear_all()

    return get_own_profile(client, user_id)
