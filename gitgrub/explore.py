"""
gitgrub.explore
===============

Explorar recetas: búsqueda por título, filtro por tags, orden y paginado.

Los parámetros viven en la query string (`q`, `tags`, `sort`) para que una
búsqueda sea compartible y navegable con atrás/adelante:

- `q`: búsqueda por título; solo aplica con 2 o más caracteres.
- `tags`: lista separada por comas; se filtra por solapamiento de arrays.
- `sort`: `newest` (default) o `liked`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional

from supabase import Client

from .backend import execute
from .config import get_settings
from .debounce import Debouncer
from .domain_models import RecipeCard
from .mappers import row_to_card

logger = logging.getLogger(__name__)

SORT_MODES = ("newest", "liked")
MIN_QUERY_LENGTH = 2

CARD_COLUMNS = (
    "id, user_id, title, tags, forked_from, created_at, updated_on, "
    "like_count, fork_count, version_count, "
    "author:users!recipes_user_id_fkey ( id, display_name, avatar_photo )"
)


def read_tags_param(value: Optional[str]) -> List[str]:
    """"pasta, quick,," -> ["pasta", "quick"]."""
    if not value:
        return []
    return [t.strip() for t in value.split(",") if t.strip()]


def write_tags_param(tags: List[str]) -> Optional[str]:
    """["pasta", " quick "] -> "pasta,quick" (None si queda vacío)."""
    cleaned = [t.strip() for t in tags if t.strip()]
    return ",".join(cleaned) if cleaned else None


def add_unique_tag(tags: List[str], tag: str) -> List[str]:
    """Agrega `tag` si no existe ya (comparación case-insensitive)."""
    if any(t.lower() == tag.lower() for t in tags):
        return list(tags)
    return [*tags, tag]


def remove_tag(tags: List[str], tag: str) -> List[str]:
    return [t for t in tags if t.lower() != tag.lower()]


def plain_query(q: Optional[str]) -> Optional[str]:
    """Query de título efectiva, o None si tiene menos de 2 caracteres."""
    trimmed = (q or "").strip()
    return trimmed if len(trimmed) >= MIN_QUERY_LENGTH else None


def sort_cards(cards: List[RecipeCard], sort: str) -> List[RecipeCard]:
    """Con `liked`, ordena por likes desc (estable); si no, deja el orden."""
    if sort == "liked":
        return sorted(cards, key=lambda c: c.like_count or 0, reverse=True)
    return list(cards)


@dataclass
class ExploreParams:
    """Parámetros de explorar, tal como van en la URL."""
    sort: str = "newest"
    q: str = ""
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_query(cls, params: Mapping[str, Optional[str]]) -> "ExploreParams":
        sort = params.get("sort") or "newest"
        if sort not in SORT_MODES:
            sort = "newest"
        return cls(
            sort=sort,
            q=params.get("q") or "",
            tags=read_tags_param(params.get("tags")),
        )

    def to_query(self) -> Dict[str, str]:
        """Query string resultante (sin claves vacías; `tag` legacy no se emite)."""
        query: Dict[str, str] = {}
        if self.sort != "newest":
            query["sort"] = self.sort
        q = plain_query(self.q)
        if q:
            query["q"] = q
        tags = write_tags_param(self.tags)
        if tags:
            query["tags"] = tags
        return query


def load_page(client: Client, params: ExploreParams, page: int = 0, page_size: Optional[int] = None) -> List[RecipeCard]:
    """
    Carga una página de recetas (más nuevas primero).

    Returns:
        Tarjetas de la página (ordenadas por likes si `sort == "liked"`).
    """
    size = page_size or get_settings().page_size
    start = page * size
    end = start + size - 1

    query = (
        client.table("recipes")
        .select(CARD_COLUMNS)
        .order("created_at", desc=True)
        .range(start, end)
    )

    if params.tags:
        # Los tags se guardan en minúsculas en la DB
        query = query.overlaps("tags", [t.lower() for t in params.tags])

    q = plain_query(params.q)
    if q:
        query = query.ilike("title", f"%{q}%")

    rows = execute(query) or []
    logger.debug(f"Explorar página {page}: {len(rows)} recetas")
    return sort_cards([row_to_card(r) for r in rows], params.sort)


class ExploreState:
    """
    Estado de la pantalla de explorar.

    La búsqueda por título se escribe a los parámetros con debounce (300 ms
    por defecto); tags y orden se aplican al instante. Cada cambio efectivo
    de parámetros recarga desde la página 0.
    """

    def __init__(
        self,
        client: Client,
        params: Optional[ExploreParams] = None,
        debounce_seconds: Optional[float] = None,
        on_change: Optional[Callable[["ExploreState"], None]] = None,
    ):
        self.client = client
        self.params = params or ExploreParams()
        self.search_input = self.params.q
        self.recipes: List[RecipeCard] = []
        self.page = 0
        self.error: Optional[str] = None
        self.on_change = on_change
        delay = get_settings().search_debounce_seconds if debounce_seconds is None else debounce_seconds
        self._debouncer = Debouncer(self._apply_query, delay=delay)

    # -- parámetros -------------------------------------------------------

    def _params_changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def _apply_query(self, value: str) -> None:
        new_q = plain_query(value) or ""
        if new_q != (plain_query(self.params.q) or ""):
            self.params.q = new_q
            self._params_changed()

    def type_query(self, value: str) -> None:
        """Texto tipeado en el buscador (se aplica con debounce)."""
        self.search_input = value
        self._debouncer(value)

    def flush_query(self) -> None:
        self._debouncer.flush()

    def clear_query(self) -> None:
        self.type_query("")

    def add_tag(self, tag: str) -> None:
        normalized = tag.strip()
        if not normalized:
            return
        tags = add_unique_tag(self.params.tags, normalized)
        if tags != self.params.tags:
            self.params.tags = tags
            self._params_changed()

    def remove_tag(self, tag: str) -> None:
        tags = remove_tag(self.params.tags, tag)
        if tags != self.params.tags:
            self.params.tags = tags
            self._params_changed()

    def clear_tags(self) -> None:
        if self.params.tags:
            self.params.tags = []
            self._params_changed()

    def set_sort(self, mode: str) -> None:
        if mode not in SORT_MODES:
            raise ValueError(f"Orden inválido: {mode}")
        if mode != self.params.sort:
            self.params.sort = mode
            self._params_changed()

    # -- datos ------------------------------------------------------------

    def reload(self) -> List[RecipeCard]:
        """Carga la primera página con los parámetros actuales."""
        self.error = None
        self.page = 0
        try:
            self.recipes = load_page(self.client, self.params, 0)
        except Exception as e:
            self.error = str(e) or "Failed to load recipes"
            logger.error(f"Error cargando recetas: {e}")
            raise
        return self.recipes

    def load_more(self) -> List[RecipeCard]:
        """Agrega la página siguiente (re-ordenando si el orden es `liked`)."""
        next_page = self.page + 1
        try:
            more = load_page(self.client, self.params, next_page)
        except Exception as e:
            self.error = str(e) or "Failed to load more"
            logger.error(f"Error cargando más recetas: {e}")
            raise
        self.recipes = sort_cards(self.recipes + more, self.params.sort)
        self.page = next_page
        return self.recipes

    def close(self) -> None:
        self._debouncer.cancel()
