"""
gitgrub.recipes
===============

Operaciones sobre recetas: detalle, versiones, alta, edición (nueva versión),
fork y borrado.

El backend hace el trabajo pesado:
- `rpc_recipe_detail` arma receta + última versión + forks en una sola llamada.
- Un trigger asigna `version_no` al insertar en `recipe_versions`.
- Los contadores (likes, forks, versiones) y los borrados en cascada son
  triggers/constraints del lado de Postgres.

Acá solo se valida el formulario, se chequea ownership antes de escribir y se
limpia un fork a medio crear.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from supabase import Client

from .backend import BackendError, NotFoundError, execute
from .config import get_settings
from .domain_models import Fork, Recipe, RecipeDetail, RecipeFormValues, RecipeVersion
from .formatting import share_payload

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Formulario
# ---------------------------------------------------------------------------

def parse_lines(text: str) -> List[str]:
    """Texto multilínea -> lista de líneas no vacías (trim)."""
    return [line.strip() for line in (text or "").split("\n") if line.strip()]


def parse_tags(text: str) -> List[str]:
    """"italian, pasta, quick" -> ["italian", "pasta", "quick"]."""
    return [t.strip() for t in (text or "").split(",") if t.strip()]


def validate_form(values: RecipeFormValues) -> RecipeFormValues:
    """
    Normaliza y valida los valores del formulario.

    Raises:
        ValueError: "Title is required" si el título queda vacío.
    """
    title = (values.title or "").strip()
    if not title:
        raise ValueError("Title is required")
    return RecipeFormValues(
        title=title,
        tags=parse_tags(",".join(t for t in values.tags if t)),
        ingredients_text=values.ingredients_text or "",
        steps_text=values.steps_text or "",
        notes=values.notes or "",
    )


def is_dirty(current: RecipeFormValues, initial: RecipeFormValues) -> bool:
    """True si el formulario cambió respecto de los valores iniciales."""
    def norm(s: str) -> str:
        return (s or "").replace("\r\n", "\n")

    return (
        current.title != initial.title
        or ", ".join(current.tags) != ", ".join(initial.tags)
        or norm(current.ingredients_text) != norm(initial.ingredients_text)
        or norm(current.steps_text) != norm(initial.steps_text)
        or current.notes != initial.notes
    )


def _version_payload(recipe_id: str, values: RecipeFormValues) -> Dict[str, Any]:
    return {
        "recipe_id": recipe_id,
        "ingredients": parse_lines(values.ingredients_text),
        "steps": parse_lines(values.steps_text),
        "notes": values.notes or None,
    }


# ---------------------------------------------------------------------------
# Detalle (con cache de 10 minutos por receta y por viewer)
# ---------------------------------------------------------------------------

_detail_cache: Dict[Tuple[str, Optional[str]], Tuple[float, RecipeDetail]] = {}
_detail_lock = threading.Lock()


def invalidate_recipe_detail(recipe_id: Optional[str] = None) -> None:
    """Descarta el detalle cacheado de una receta (o de todas)."""
    with _detail_lock:
        if recipe_id is None:
            _detail_cache.clear()
            return
        for key in [k for k in _detail_cache if k[0] == recipe_id]:
            del _detail_cache[key]


def _parse_detail(raw: Dict[str, Any]) -> RecipeDetail:
    # Algunos drivers devuelven `latestversion` en minúsculas
    latest = raw.get("latestVersion") or raw.get("latestversion")
    return RecipeDetail(
        recipe=Recipe.from_row(raw["recipe"]),
        latest_version=RecipeVersion.from_row(latest) if latest else None,
        forks=[Fork.from_row(f) for f in (raw.get("forks") or [])],
    )


def get_recipe_detail(client: Client, recipe_id: str, viewer_id: Optional[str] = None) -> RecipeDetail:
    """
    Devuelve el detalle de una receta vía `rpc_recipe_detail`.

    El resultado se considera fresco durante `recipe_detail_stale_seconds`
    (10 minutos por defecto). La clave incluye al viewer porque `liked_by_me`
    depende de quién mira.

    Raises:
        NotFoundError: Si la receta no existe o no tiene versiones.
        BackendError: Si la RPC falla.
    """
    if not recipe_id:
        raise NotFoundError("Recipe not found")

    key = (recipe_id, viewer_id)
    stale_after = get_settings().recipe_detail_stale_seconds
    now = time.monotonic()

    with _detail_lock:
        entry = _detail_cache.get(key)
        if entry and now - entry[0] < stale_after:
            return entry[1]

    raw = execute(client.rpc("rpc_recipe_detail", {"p_recipe_id": recipe_id}))
    if isinstance(raw, list):
        raw = raw[0] if raw else None
    if not raw or not raw.get("recipe"):
        raise NotFoundError("Recipe not found")

    detail = _parse_detail(raw)
    if detail.latest_version is None:
        raise NotFoundError("Recipe not found")

    with _detail_lock:
        for stale_key in [k for k, (stamp, _) in _detail_cache.items() if now - stamp >= stale_after]:
            del _detail_cache[stale_key]
        _detail_cache[key] = (now, detail)
    return detail


# ---------------------------------------------------------------------------
# Versiones
# ---------------------------------------------------------------------------

def list_versions(client: Client, recipe_id: str) -> List[RecipeVersion]:
    """Versiones de la receta, la más nueva primero."""
    rows = execute(
        client.table("recipe_versions")
        .select("*")
        .eq("recipe_id", recipe_id)
        .order("version_no", desc=True)
    )
    return [RecipeVersion.from_row(r) for r in rows or []]


def select_version(versions: Sequence[RecipeVersion], requested_no: Optional[int] = None) -> Optional[RecipeVersion]:
    """
    Elige la versión a mostrar según `?v=`.

    `versions` viene ordenado de más nueva a más vieja. Sin número pedido (o
    con uno inexistente) se devuelve la última.
    """
    if not versions:
        return None
    if requested_no:
        for version in versions:
            if version.version_no == requested_no:
                return version
    return versions[0]


# ---------------------------------------------------------------------------
# Escritura
# ---------------------------------------------------------------------------

def _get_recipe_row(client: Client, recipe_id: str, columns: str = "id,user_id,title,tags") -> Dict[str, Any]:
    rows = execute(client.table("recipes").select(columns).eq("id", recipe_id).limit(1))
    if not rows:
        raise NotFoundError("Recipe not found")
    return rows[0]


def _require_owner(client: Client, recipe_id: str, user_id: Optional[str]) -> Dict[str, Any]:
    row = _get_recipe_row(client, recipe_id)
    if not user_id or row["user_id"] != user_id:
        raise PermissionError("You do not have permission to edit this recipe.")
    return row


def create_recipe(client: Client, user_id: Optional[str], values: RecipeFormValues) -> str:
    """
    Crea una receta con su versión 1.

    Returns:
        ID de la receta creada.

    Raises:
        PermissionError: Si no hay sesión.
        ValueError: Si el formulario es inválido.
    """
    if not user_id:
        raise PermissionError("Not signed in")
    values = validate_form(values)

    rows = execute(
        client.table("recipes").insert(
            {"user_id": user_id, "title": values.title, "tags": values.tags}
        )
    )
    if not rows:
        raise RuntimeError("Error creating recipe")
    recipe_id = rows[0]["id"]

    execute(client.table("recipe_versions").insert(_version_payload(recipe_id, values)))
    logger.info(f"Receta creada: {recipe_id}")
    return recipe_id


def load_for_edit(client: Client, recipe_id: str, user_id: Optional[str]) -> Tuple[RecipeFormValues, int]:
    """
    Carga título/tags y la última versión para editar.

    Returns:
        (valores iniciales del formulario, número de la versión actual)

    Raises:
        NotFoundError: Si la receta no existe o no tiene versiones.
        PermissionError: Si quien edita no es el dueño.
    """
    row = _require_owner(client, recipe_id, user_id)

    versions = execute(
        client.table("recipe_versions")
        .select("version_no,ingredients,steps,notes")
        .eq("recipe_id", row["id"])
        .order("version_no", desc=True)
        .limit(1)
    )
    if not versions:
        raise NotFoundError("No versions found")
    latest = versions[0]

    initial = RecipeFormValues(
        title=row["title"],
        tags=list(row.get("tags") or []),
        ingredients_text="\n".join(latest.get("ingredients") or []),
        steps_text="\n".join(latest.get("steps") or []),
        notes=latest.get("notes") or "",
    )
    return initial, int(latest["version_no"])


def save_new_version(client: Client, recipe_id: str, user_id: Optional[str], values: RecipeFormValues) -> int:
    """
    Guarda una edición: actualiza título/tags y agrega una versión nueva.

    Las versiones son inmutables; editar siempre crea una versión. El número
    lo asigna el trigger (se envía 0).

    Returns:
        Número de la versión nueva.
    """
    values = validate_form(values)
    _, current_no = load_for_edit(client, recipe_id, user_id)

    execute(
        client.table("recipes")
        .update({"title": values.title, "tags": values.tags})
        .eq("id", recipe_id)
    )

    payload = _version_payload(recipe_id, values)
    payload["version_no"] = 0
    inserted = execute(client.table("recipe_versions").insert(payload))

    invalidate_recipe_detail(recipe_id)

    new_no = inserted[0].get("version_no") if inserted else None
    return int(new_no) if new_no else current_no + 1


def fork_seed(
    source_title: Optional[str],
    source_tags: Optional[List[str]],
    base_version: Optional[RecipeVersion],
) -> RecipeFormValues:
    """Valores iniciales del formulario de fork."""
    return RecipeFormValues(
        title=f"Fork of {source_title}" if source_title else "Forked Recipe",
        tags=list(source_tags or []),
        ingredients_text="\n".join(base_version.ingredients if base_version else []),
        steps_text="\n".join(base_version.steps if base_version else []),
        notes=(base_version.notes or "") if base_version else "",
    )


def fork_recipe(client: Client, source_id: str, user_id: Optional[str], values: RecipeFormValues) -> str:
    """
    Crea una receta nueva a partir de otra (fork) con la versión 1 editada.

    Se permite forkear una receta propia. Si la receta se crea pero la v1
    falla, la receta recién creada se borra y el error se propaga.

    Returns:
        ID de la receta nueva.
    """
    if not user_id:
        raise PermissionError("You must be signed in.")
    values = validate_form(values)

    created_id: Optional[str] = None
    try:
        rows = execute(
            client.table("recipes").insert(
                {
                    "user_id": user_id,
                    "title": values.title,
                    "tags": values.tags,
                    "forked_from": source_id,
                }
            )
        )
        if not rows:
            raise RuntimeError("Could not create recipe")
        created_id = rows[0]["id"]

        execute(client.table("recipe_versions").insert(_version_payload(created_id, values)))
    except Exception:
        if created_id:
            logger.warning(f"Fork {created_id} sin v1, se borra")
            try:
                execute(client.table("recipes").delete().eq("id", created_id))
            except BackendError as cleanup_error:
                logger.error(f"No se pudo borrar el fork {created_id}: {cleanup_error}")
        raise

    invalidate_recipe_detail(source_id)
    logger.info(f"Fork creado: {created_id} (origen {source_id})")
    return created_id


def delete_recipe(client: Client, recipe_id: str, user_id: Optional[str]) -> None:
    """
    Borra una receta (solo el dueño). Versiones, likes y forks los limpia el
    backend en cascada.
    """
    row = _get_recipe_row(client, recipe_id, "id,user_id")
    if not user_id or row["user_id"] != user_id:
        raise PermissionError("Only the owner can delete this recipe.")

    execute(client.table("recipes").delete().eq("id", recipe_id))
    invalidate_recipe_detail(recipe_id)
    logger.info(f"Receta borrada: {recipe_id}")


# ---------------------------------------------------------------------------
# Acciones disponibles
# ---------------------------------------------------------------------------

def recipe_actions(recipe: Recipe, viewer_id: Optional[str], share_url: str) -> Dict[str, Any]:
    """
    Qué acciones ve un usuario sobre una receta.

    - Dueño: editar y borrar.
    - Otro usuario autenticado: like (toggle).
    - Anónimo: contador de likes estático.
    - Cualquier autenticado: fork. Todos: compartir.
    """
    is_authed = bool(viewer_id)
    is_owner = is_authed and recipe.user_id == viewer_id
    return {
        "is_owner": is_owner,
        "can_edit": is_owner,
        "can_delete": is_owner,
        "can_like": is_authed and not is_owner,
        "static_like_count": None if is_authed else recipe.like_count,
        "can_fork": is_authed,
        "can_create": is_authed,
        "view_original": recipe.forked_from,
        "share": share_payload(share_url, recipe.title),
    }
