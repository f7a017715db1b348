"""
Modelos de request/response para la API.

Estos modelos definen la estructura esperada de los requests HTTP,
validando tipos y valores antes de pasarlos al core.
"""

from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from gitgrub.domain_models import RecipeFormValues
from gitgrub.recipes import parse_tags


class SortMode(str, Enum):
    """Orden de la grilla de explorar."""

    NEWEST = "newest"
    LIKED = "liked"


class NotificationType(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


# ---------------------------------------------------------------------------
# Recetas
# ---------------------------------------------------------------------------

class RecipeFormRequest(BaseModel):
    """
    Formulario de receta (crear, editar y forkear).

    Ingredientes y pasos van como texto multilínea (una línea por item); los
    tags como texto separado por comas ("italian, pasta") o como lista.
    """

    title: str = Field(..., description="Título de la receta")
    tags: Union[str, List[str]] = Field(default_factory=list, description="Tags (ej: \"italian, pasta\")")
    ingredients_text: str = Field(default="", description="Ingredientes, uno por línea")
    steps_text: str = Field(default="", description="Pasos, uno por línea")
    notes: str = Field(default="", description="Notas libres")

    def to_values(self) -> RecipeFormValues:
        return RecipeFormValues(
            title=self.title,
            tags=parse_tags(self.tags) if isinstance(self.tags, str) else list(self.tags),
            ingredients_text=self.ingredients_text,
            steps_text=self.steps_text,
            notes=self.notes,
        )


class AuthorResponse(BaseModel):
    id: str
    display_name: Optional[str] = None
    avatar_photo: Optional[str] = None


class RecipeCardResponse(BaseModel):
    """Tarjeta de receta (explorar, perfil)."""

    id: str
    title: str
    tags: List[str] = Field(default_factory=list)
    created_at: Optional[str] = None
    like_count: int = 0
    like_count_label: str = Field(default="0", description="Contador formateado (ej: 1.2k)")
    author: Optional[AuthorResponse] = None


class ExploreResponse(BaseModel):
    recipes: List[RecipeCardResponse]
    page: int
    has_more: bool = Field(..., description="True si la página vino completa")
    query: dict = Field(default_factory=dict, description="Query string normalizada (sort, q, tags)")


class RecipeVersionResponse(BaseModel):
    id: str
    version_no: int
    ingredients: List[str] = Field(default_factory=list)
    steps: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    created_at: Optional[str] = None


class ForkResponse(BaseModel):
    id: str
    title: str
    created_at: Optional[str] = None
    author: Optional[AuthorResponse] = None


class RecipeResponse(BaseModel):
    id: str
    user_id: str
    title: str
    tags: List[str] = Field(default_factory=list)
    forked_from: Optional[str] = None
    created_at: Optional[str] = None
    updated_on: Optional[str] = None
    like_count: int = 0
    version_count: int = 0
    fork_count: int = 0
    liked_by_me: bool = False
    author: Optional[AuthorResponse] = None


class RecipeDetailResponse(BaseModel):
    """
    Detalle de receta.

    `version` es la versión mostrada (la pedida con `?v=` o la última);
    `latest_version_no` permite marcar si se está viendo una versión vieja.
    """

    recipe: RecipeResponse
    version: RecipeVersionResponse
    latest_version_no: int
    forks: List[ForkResponse] = Field(default_factory=list)
    actions: dict = Field(default_factory=dict, description="Acciones disponibles para quien mira")


class RecipeCreatedResponse(BaseModel):
    id: str


class RecipeEditResponse(BaseModel):
    values: RecipeFormRequest
    current_version_no: int


class VersionSavedResponse(BaseModel):
    version_no: int


# ---------------------------------------------------------------------------
# Social
# ---------------------------------------------------------------------------

class LikeToggleRequest(BaseModel):
    """Estado de like que tiene el cliente antes del toggle."""

    liked: bool = Field(..., description="Si el usuario ya le dio like")
    count: int = Field(default=0, ge=0, description="Contador actual de likes")


class LikeStateResponse(BaseModel):
    liked: bool
    count: int
    count_label: str
    announcement: str


class FollowToggleRequest(BaseModel):
    """Estado de follow que tiene el cliente antes del toggle."""

    following: bool = Field(..., description="Si el usuario ya sigue al perfil")
    follower_count: int = Field(default=0, ge=0, description="Seguidores actuales")


class FollowStateResponse(BaseModel):
    following: bool
    follower_count: int
    label: str


# ---------------------------------------------------------------------------
# Perfiles
# ---------------------------------------------------------------------------

class UserProfileResponse(BaseModel):
    user_id: str
    email: str
    display_name: str
    username: str
    avatar_photo: Optional[str] = None
    cover_photo: Optional[str] = None
    created_at: Optional[str] = None
    updated_on: Optional[str] = None


class ProfileViewResponse(BaseModel):
    id: str
    display_name: Optional[str] = None
    avatar_photo: Optional[str] = None
    cover_photo: Optional[str] = None
    follower_count: int = 0
    following_count: int = 0
    followed_by_me: bool = False


class ProfilePageResponse(BaseModel):
    user: ProfileViewResponse
    recipes: List[RecipeCardResponse] = Field(default_factory=list)
    is_me: bool = False
    follow_disabled_reason: Optional[str] = None


# ---------------------------------------------------------------------------
# Imágenes y notificaciones
# ---------------------------------------------------------------------------

class ProfileImagesResponse(BaseModel):
    """URLs a mostrar para avatar y portada, y el placeholder si no hay imagen."""

    handle: str = Field(..., description="Handle dueño de las object URLs; se manda de vuelta para recargar o liberar")
    avatar_photo: Optional[str] = None
    cover_photo: Optional[str] = None
    errors: dict = Field(default_factory=dict)
    placeholders: dict = Field(default_factory=dict)


class NotificationRequest(BaseModel):
    type: NotificationType = Field(default=NotificationType.INFO)
    message: str
    description: Optional[str] = None
    duration_ms: Optional[int] = Field(default=None, gt=0, description="Duración en ms (default 4000)")


class NotificationResponse(BaseModel):
    id: str
    type: str
    message: str
    description: Optional[str] = None
    duration_ms: int
