"""
Modelos de dominio del cliente GitGrub.

Son representaciones tipadas de lo que devuelve el backend (filas de tablas y
payloads de RPCs). No tienen lógica de persistencia: el backend es la fuente
de verdad.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


UNKNOWN_CHEF = "Unknown Chef"


@dataclass
class Author:
    """Autor de una receta (subconjunto de la fila `users`)."""
    id: str
    display_name: Optional[str] = None
    avatar_photo: Optional[str] = None
    follower_count: Optional[int] = None
    following_count: Optional[int] = None
    followed_by_me: Optional[bool] = None

    @classmethod
    def from_row(cls, row: Any) -> Optional["Author"]:
        # El join de PostgREST puede devolver un objeto o una lista de un elemento
        if isinstance(row, list):
            row = row[0] if row else None
        if not row:
            return None
        return cls(
            id=row["id"],
            display_name=row.get("display_name"),
            avatar_photo=row.get("avatar_photo"),
            follower_count=row.get("follower_count"),
            following_count=row.get("following_count"),
            followed_by_me=row.get("followed_by_me"),
        )


@dataclass
class RecipeVersion:
    """Snapshot inmutable de ingredientes/pasos/notas de una receta."""
    id: str
    recipe_id: str
    version_no: int
    ingredients: List[str] = field(default_factory=list)
    steps: List[str] = field(default_factory=list)
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_on: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "RecipeVersion":
        return cls(
            id=row["id"],
            recipe_id=row["recipe_id"],
            version_no=int(row["version_no"]),
            ingredients=list(row.get("ingredients") or []),
            steps=list(row.get("steps") or []),
            notes=row.get("notes"),
            created_at=row.get("created_at"),
            updated_on=row.get("updated_on"),
        )


@dataclass
class Recipe:
    """Receta tal como la arma `rpc_recipe_detail`."""
    id: str
    user_id: str
    title: str
    tags: List[str] = field(default_factory=list)
    forked_from: Optional[str] = None
    created_at: Optional[str] = None
    updated_on: Optional[str] = None
    like_count: int = 0
    version_count: int = 0
    fork_count: int = 0
    liked_by_me: bool = False
    author: Optional[Author] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Recipe":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            tags=list(row.get("tags") or []),
            forked_from=row.get("forked_from"),
            created_at=row.get("created_at"),
            updated_on=row.get("updated_on"),
            like_count=row.get("like_count") or 0,
            version_count=row.get("version_count") or 0,
            fork_count=row.get("fork_count") or 0,
            liked_by_me=bool(row.get("liked_by_me")),
            author=Author.from_row(row.get("author")),
        )


@dataclass
class Fork:
    """Receta hija listada en el detalle de su receta padre."""
    id: str
    title: str
    created_at: Optional[str] = None
    author: Optional[Author] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Fork":
        return cls(
            id=row["id"],
            title=row["title"],
            created_at=row.get("created_at"),
            author=Author.from_row(row.get("author")),
        )


@dataclass
class RecipeDetail:
    """Detalle completo: receta, última versión y forks."""
    recipe: Recipe
    latest_version: Optional[RecipeVersion]
    forks: List[Fork] = field(default_factory=list)


@dataclass
class RecipeCard:
    """Tarjeta de receta para grillas (explorar, perfil)."""
    id: str
    title: str
    tags: List[str]
    created_at: Optional[str]
    like_count: int
    author: Optional[Author]


@dataclass
class ProfileView:
    """Fila devuelta por `rpc_profile_view`."""
    id: str
    display_name: Optional[str] = None
    avatar_photo: Optional[str] = None
    cover_photo: Optional[str] = None
    follower_count: int = 0
    following_count: int = 0
    followed_by_me: bool = False

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ProfileView":
        return cls(
            id=row["id"],
            display_name=row.get("display_name"),
            avatar_photo=row.get("avatar_photo"),
            cover_photo=row.get("cover_photo"),
            follower_count=row.get("follower_count") or 0,
            following_count=row.get("following_count") or 0,
            followed_by_me=bool(row.get("followed_by_me")),
        )


@dataclass
class BaseUser:
    """Campos editables de un usuario (forma del cliente)."""
    email: str
    display_name: str
    username: str
    avatar_photo: Optional[str] = None
    cover_photo: Optional[str] = None


@dataclass
class UserProfile(BaseUser):
    """Usuario completo para el cliente (mapeado desde la fila Postgres)."""
    user_id: str = ""
    created_at: Optional[str] = None
    updated_on: Optional[str] = None


@dataclass
class RecipeFormValues:
    """Valores del formulario de receta (crear, editar, forkear)."""
    title: str = ""
    tags: List[str] = field(default_factory=list)
    ingredients_text: str = ""
    steps_text: str = ""
    notes: str = ""


# ---------------------------------------------------------------------------
# Tipos de imagen
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ImageTypeSpec:
    key: str
    bucket_name: str
    storage_folder: str
    cache_limit: int


IMAGE_TYPES: Dict[str, ImageTypeSpec] = {
    "UserAvatarPhoto": ImageTypeSpec(
        key="userAvatarPhoto",
        bucket_name="avatar-photos",
        storage_folder="users",
        cache_limit=5,
    ),
    "UserCoverPhoto": ImageTypeSpec(
        key="userCoverPhoto",
        bucket_name="cover-photos",
        storage_folder="users",
        cache_limit=5,
    ),
}

IMAGE_FIELDS = ("avatar_photo", "cover_photo")

# Campo de imagen -> tipo de imagen
FIELD_IMAGE_TYPES = {
    "avatar_photo": "UserAvatarPhoto",
    "cover_photo": "UserCoverPhoto",
}


def get_image_type(image_type: str) -> ImageTypeSpec:
    """
    Devuelve la especificación de un tipo de imagen.

    Raises:
        ValueError: Si el tipo no existe.
    """
    spec = IMAGE_TYPES.get(image_type)
    if spec is None:
        raise ValueError(f"Tipo de imagen desconocido: {image_type}")
    return spec
