"""
Endpoints de recetas.

Este módulo maneja:
- GET /api/v1/recipes: Explorar (búsqueda, tags, orden, paginado)
- POST /api/v1/recipes: Crear receta (v1)
- GET /api/v1/recipes/{recipe_id}: Detalle (con `?v=` para ver otra versión)
- GET /api/v1/recipes/{recipe_id}/versions: Historial de versiones
- GET /api/v1/recipes/{recipe_id}/edit: Valores para editar
- PUT /api/v1/recipes/{recipe_id}: Guardar edición (nueva versión)
- GET /api/v1/recipes/{recipe_id}/fork: Valores iniciales del fork
- POST /api/v1/recipes/{recipe_id}/fork: Crear fork
- DELETE /api/v1/recipes/{recipe_id}: Borrar receta (solo dueño)
"""

import logging
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from supabase import Client

from gitgrub.config import get_settings
from gitgrub.domain_models import Author, RecipeCard, RecipeVersion
from gitgrub.explore import ExploreParams, load_page
from gitgrub.formatting import format_count
from gitgrub.recipes import (
    create_recipe,
    delete_recipe,
    fork_recipe,
    fork_seed,
    get_recipe_detail,
    list_versions,
    load_for_edit,
    recipe_actions,
    save_new_version,
    select_version,
)

from ..dependencies import get_backend, get_current_user_id, get_optional_user_id, http_error
from ..models.requests import (
    AuthorResponse,
    ExploreResponse,
    RecipeCardResponse,
    RecipeCreatedResponse,
    RecipeDetailResponse,
    RecipeEditResponse,
    RecipeFormRequest,
    RecipeResponse,
    RecipeVersionResponse,
    SortMode,
    VersionSavedResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/recipes", tags=["recipes"])


def author_response(author: Optional[Author]) -> Optional[AuthorResponse]:
    if author is None:
        return None
    return AuthorResponse(id=author.id, display_name=author.display_name, avatar_photo=author.avatar_photo)


def card_response(card: RecipeCard) -> RecipeCardResponse:
    return RecipeCardResponse(
        id=card.id,
        title=card.title,
        tags=card.tags,
        created_at=card.created_at,
        like_count=card.like_count,
        like_count_label=format_count(card.like_count),
        author=author_response(card.author),
    )


def version_param(v: Optional[str]) -> Optional[int]:
    """`?v=` como número de versión; 0, vacío o no numérico -> None (la última)."""
    try:
        number = int(v) if v is not None else 0
    except ValueError:
        return None
    return number if number > 0 else None


def _version_response(version: RecipeVersion) -> RecipeVersionResponse:
    return RecipeVersionResponse(
        id=version.id,
        version_no=version.version_no,
        ingredients=version.ingredients,
        steps=version.steps,
        notes=version.notes,
        created_at=version.created_at,
    )


@router.get("", response_model=ExploreResponse)
def explore_recipes(
    q: str = Query("", description="Búsqueda por título (mín. 2 caracteres)"),
    tags: Optional[str] = Query(None, description="Tags separados por coma"),
    sort: SortMode = Query(SortMode.NEWEST),
    page: int = Query(0, ge=0),
    client: Client = Depends(get_backend),
):
    """
    Lista recetas para la pantalla de explorar.

    Returns:
        ExploreResponse con las tarjetas de la página y la query normalizada
    """
    params = ExploreParams.from_query({"q": q, "tags": tags, "sort": sort.value})
    try:
        cards = load_page(client, params, page)
    except Exception as e:
        raise http_error(e) from e

    return ExploreResponse(
        recipes=[card_response(c) for c in cards],
        page=page,
        has_more=len(cards) == get_settings().page_size,
        query=params.to_query(),
    )


@router.post("", response_model=RecipeCreatedResponse, status_code=201)
def create(
    request: RecipeFormRequest,
    user_id: str = Depends(get_current_user_id),
    client: Client = Depends(get_backend),
):
    """
    Crea una receta nueva con su versión 1.

    Raises:
        400: Si el título está vacío
    """
    try:
        recipe_id = create_recipe(client, user_id, request.to_values())
    except Exception as e:
        raise http_error(e, user_id, notify="Failed to create recipe") from e
    return RecipeCreatedResponse(id=recipe_id)


@router.get("/{recipe_id}", response_model=RecipeDetailResponse)
def get_recipe(
    recipe_id: str,
    http_request: Request,
    v: Optional[str] = Query(None, description="Número de versión a mostrar"),
    viewer_id: Optional[str] = Depends(get_optional_user_id),
    client: Client = Depends(get_backend),
):
    """
    Obtiene el detalle de una receta.

    Sin `v` (o con `v=0`, no numérico o inexistente) se muestra la última.

    Raises:
        404: Si la receta no existe
    """
    try:
        detail = get_recipe_detail(client, recipe_id, viewer_id)
        version = detail.latest_version
        requested = version_param(v)
        if requested and requested != version.version_no:
            version = select_version(list_versions(client, recipe_id), requested) or version
    except Exception as e:
        raise http_error(e) from e

    recipe = detail.recipe
    share_url = str(http_request.url.remove_query_params("v"))
    return RecipeDetailResponse(
        recipe=RecipeResponse(
            **{k: val for k, val in asdict(recipe).items() if k != "author"},
            author=author_response(recipe.author),
        ),
        version=_version_response(version),
        latest_version_no=detail.latest_version.version_no,
        forks=[
            {"id": f.id, "title": f.title, "created_at": f.created_at, "author": author_response(f.author)}
            for f in detail.forks
        ],
        actions=recipe_actions(recipe, viewer_id, share_url),
    )


@router.get("/{recipe_id}/versions", response_model=List[RecipeVersionResponse])
def get_versions(recipe_id: str, client: Client = Depends(get_backend)):
    """Historial de versiones, la más nueva primero."""
    try:
        versions = list_versions(client, recipe_id)
    except Exception as e:
        raise http_error(e) from e
    return [_version_response(v) for v in versions]


@router.get("/{recipe_id}/edit", response_model=RecipeEditResponse)
def get_edit_values(
    recipe_id: str,
    user_id: str = Depends(get_current_user_id),
    client: Client = Depends(get_backend),
):
    """
    Valores iniciales del formulario de edición.

    Raises:
        403: Si quien edita no es el dueño
        404: Si la receta no existe o no tiene versiones
    """
    try:
        values, current_no = load_for_edit(client, recipe_id, user_id)
    except Exception as e:
        raise http_error(e) from e
    return RecipeEditResponse(values=RecipeFormRequest(**asdict(values)), current_version_no=current_no)


@router.put("/{recipe_id}", response_model=VersionSavedResponse)
def save_edit(
    recipe_id: str,
    request: RecipeFormRequest,
    user_id: str = Depends(get_current_user_id),
    client: Client = Depends(get_backend),
):
    """
    Guarda una edición como versión nueva.

    Returns:
        Número de la versión creada (para redirigir a `?v=N`)
    """
    try:
        version_no = save_new_version(client, recipe_id, user_id, request.to_values())
    except Exception as e:
        raise http_error(e, user_id, notify="Failed to save") from e
    return VersionSavedResponse(version_no=version_no)


@router.get("/{recipe_id}/fork", response_model=RecipeFormRequest)
def get_fork_seed(
    recipe_id: str,
    v: Optional[str] = Query(None, description="Versión base del fork"),
    user_id: str = Depends(get_current_user_id),
    client: Client = Depends(get_backend),
):
    """Valores iniciales del formulario de fork (título "Fork of ...")."""
    try:
        detail = get_recipe_detail(client, recipe_id, user_id)
        base = detail.latest_version
        requested = version_param(v)
        if requested and requested != base.version_no:
            base = select_version(list_versions(client, recipe_id), requested) or base
    except Exception as e:
        raise http_error(e) from e
    seed = fork_seed(detail.recipe.title, detail.recipe.tags, base)
    return RecipeFormRequest(**asdict(seed))


@router.post("/{recipe_id}/fork", response_model=RecipeCreatedResponse, status_code=201)
def create_fork(
    recipe_id: str,
    request: RecipeFormRequest,
    user_id: str = Depends(get_current_user_id),
    client: Client = Depends(get_backend),
):
    """
    Crea un fork de la receta con la v1 editada.

    Si la v1 no se puede crear, la receta nueva se borra.
    """
    try:
        new_id = fork_recipe(client, recipe_id, user_id, request.to_values())
    except Exception as e:
        raise http_error(e, user_id, notify="Failed to create fork") from e
    return RecipeCreatedResponse(id=new_id)


@router.delete("/{recipe_id}", status_code=204)
def remove_recipe(
    recipe_id: str,
    user_id: str = Depends(get_current_user_id),
    client: Client = Depends(get_backend),
):
    """
    Borra una receta. Solo el dueño puede hacerlo.

    Raises:
        403: Si no es el dueño
        404: Si la receta no existe
    """
    try:
        delete_recipe(client, recipe_id, user_id)
    except Exception as e:
        raise http_error(e, user_id, notify="Failed to delete recipe") from e
