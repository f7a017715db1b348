"""
Mappers entre las filas de Postgres y los modelos del cliente.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from .domain_models import UNKNOWN_CHEF, Author, BaseUser, RecipeCard, UserProfile


def postgres_user_to_profile(row: Dict[str, Any]) -> UserProfile:
    """Fila `users` (DB) -> UserProfile (cliente)."""
    return UserProfile(
        user_id=row["id"],
        email=row.get("email") or "",
        display_name=row.get("display_name") or "",
        username=row.get("username") or "",
        avatar_photo=row.get("avatar_photo"),
        cover_photo=row.get("cover_photo"),
        created_at=row.get("created_at"),
        updated_on=row.get("updated_on"),
    )


def profile_to_base_user(user: UserProfile) -> BaseUser:
    """UserProfile -> BaseUser (para formularios de edición)."""
    return BaseUser(
        email=user.email,
        display_name=user.display_name,
        username=user.username,
        avatar_photo=user.avatar_photo,
        cover_photo=user.cover_photo,
    )


def base_user_to_postgres(user: BaseUser) -> Dict[str, Any]:
    """BaseUser -> payload parcial de `users` para update/insert."""
    return {
        "email": user.email,
        "display_name": user.display_name,
        "username": user.username,
        "avatar_photo": user.avatar_photo or None,
        "cover_photo": user.cover_photo or None,
    }


def profile_to_postgres(user: UserProfile) -> Dict[str, Any]:
    """UserProfile -> fila completa de `users` (útil para tests y datos mock)."""
    return {
        "id": user.user_id,
        "email": user.email,
        "display_name": user.display_name,
        "username": user.username,
        "avatar_photo": user.avatar_photo,
        "cover_photo": user.cover_photo,
        "created_at": user.created_at,
        "updated_on": user.updated_on,
    }


def card_author(author: Optional[Author]) -> Optional[Author]:
    """Autor para tarjetas: nombre por defecto "Unknown Chef"."""
    if author is None:
        return None
    return Author(
        id=author.id,
        display_name=author.display_name or UNKNOWN_CHEF,
        avatar_photo=author.avatar_photo,
    )


def row_to_card(row: Dict[str, Any], author: Optional[Author] = None) -> RecipeCard:
    """
    Fila de `recipes` -> RecipeCard.

    Args:
        row: Fila con id, title, tags, created_at, like_count y opcionalmente
            `author` (join con users).
        author: Autor a usar para todas las tarjetas (ej: en el perfil). Si es
            None se toma del join.
    """
    return RecipeCard(
        id=row["id"],
        title=row["title"],
        tags=list(row.get("tags") or []),
        created_at=row.get("created_at"),
        like_count=row.get("like_count") or 0,
        author=card_author(author if author is not None else Author.from_row(row.get("author"))),
    )
