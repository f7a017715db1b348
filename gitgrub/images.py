"""
gitgrub.images
==============

Resolución de imágenes de perfil con cache local.

Piezas
------
- `fetch_and_cache_image`: descarga una imagen y la guarda en el cache. Es
  *single-flight*: si varios llamadores piden la misma clave a la vez, se hace
  una sola descarga y todos reciben el mismo resultado.
- `ObjectUrlRegistry`: emite URLs efímeras que apuntan a blobs en memoria
  (el equivalente a `URL.createObjectURL`). Cada URL debe revocarse cuando deja
  de usarse.
- `ProfileImages`: para un usuario, decide qué URL mostrar para el avatar y
  la portada (cache, descarga, URL externa o nada) y administra el ciclo de
  vida de las object URLs que emitió.
"""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import Future
from typing import Any, Dict, Mapping, Optional, Tuple

import requests
from sqlalchemy.exc import SQLAlchemyError

from .config import get_settings
from .db.image_cache import CachedImage, cache_image, cache_key, get_cached_image_record
from .domain_models import FIELD_IMAGE_TYPES, IMAGE_FIELDS
from .formatting import initials
from .storage import is_supabase_url

logger = logging.getLogger(__name__)

# Descargas en curso por clave de cache
_in_flight: Dict[str, "Future[Optional[CachedImage]]"] = {}
_in_flight_lock = threading.Lock()


def _download(image_url: str) -> Tuple[bytes, str]:
    response = requests.get(
        image_url,
        headers={"Cache-Control": "no-store"},
        timeout=get_settings().image_fetch_timeout,
    )
    if not response.ok:
        raise requests.HTTPError(
            f"Failed to fetch image from {image_url} ({response.status_code})",
            response=response,
        )
    content_type = response.headers.get("Content-Type", "application/octet-stream")
    return response.content, content_type


def fetch_and_cache_image(image_url: str, image_type: str, image_source_id: str) -> Optional[CachedImage]:
    """
    Descarga `image_url`, la cachea bajo `(image_type, image_source_id)` y la
    devuelve.

    Returns:
        La imagen cacheada, o None si la descarga/cacheo falló (el error se
        loguea; quien llama decide qué mostrar).
    """
    key = cache_key(image_type, image_source_id)

    with _in_flight_lock:
        future = _in_flight.get(key)
        owner = future is None
        if owner:
            future = Future()
            _in_flight[key] = future

    if not owner:
        logger.debug(f"Descarga de {key} ya en curso, esperando resultado")
        return future.result()

    result: Optional[CachedImage] = None
    try:
        content, content_type = _download(image_url)
        result = cache_image(image_type, image_source_id, content, image_url, content_type)
    except (requests.RequestException, SQLAlchemyError) as e:
        logger.error(f"Error descargando/cacheando imagen: {e}")
    finally:
        with _in_flight_lock:
            _in_flight.pop(key, None)
        future.set_result(result)

    return result


class ObjectUrlRegistry:
    """
    URLs efímeras para blobs en memoria.

    `create` devuelve una URL servible por la API (`{prefix}{token}`);
    `resolve` devuelve el blob; `revoke` lo libera.
    """

    def __init__(self, prefix: str = "/api/v1/images/objects/"):
        self.prefix = prefix
        self._lock = threading.Lock()
        self._blobs: Dict[str, Tuple[bytes, str]] = {}

    def _token(self, url: str) -> str:
        return url[len(self.prefix):] if url.startswith(self.prefix) else url

    def create(self, blob: bytes, content_type: str = "application/octet-stream") -> str:
        token = uuid.uuid4().hex
        with self._lock:
            self._blobs[token] = (blob, content_type)
        return f"{self.prefix}{token}"

    def resolve(self, url: str) -> Optional[Tuple[bytes, str]]:
        with self._lock:
            return self._blobs.get(self._token(url))

    def revoke(self, url: Optional[str]) -> None:
        if not url:
            return
        with self._lock:
            self._blobs.pop(self._token(url), None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._blobs)


object_urls = ObjectUrlRegistry()


def _source_attr(source: Any, name: str) -> Any:
    if source is None:
        return None
    if isinstance(source, Mapping):
        return source.get(name)
    return getattr(source, name, None)


def _source_user_id(source: Any) -> Optional[str]:
    return _source_attr(source, "user_id") or _source_attr(source, "id")


class ProfileImages:
    """
    Imágenes (avatar y portada) de un usuario.

    Mantiene las object URLs que emitió para poder revocarlas cuando se
    reemplazan, cuando una imagen falla o al cerrar.
    """

    def __init__(self, registry: Optional[ObjectUrlRegistry] = None):
        self.registry = registry if registry is not None else object_urls
        self.image_urls: Dict[str, Optional[str]] = {f: None for f in IMAGE_FIELDS}
        self.image_error: Dict[str, bool] = {f: False for f in IMAGE_FIELDS}
        self._object_urls: Dict[str, Optional[str]] = {f: None for f in IMAGE_FIELDS}

    def _revoke(self, field: str) -> None:
        previous = self._object_urls.get(field)
        if previous:
            self.registry.revoke(previous)
            self._object_urls[field] = None

    def _set_object_url(self, field: str, image: CachedImage) -> str:
        self._revoke(field)
        url = self.registry.create(image.blob or b"", image.content_type)
        self._object_urls[field] = url
        self.image_urls[field] = url
        return url

    def load(self, source: Any, file_previews: Optional[Mapping[str, Optional[str]]] = None) -> Dict[str, Optional[str]]:
        """
        Resuelve las URLs a mostrar para `source` (UserProfile, ProfileView o
        dict con `user_id`/`id`, `avatar_photo`, `cover_photo`).

        Reglas por campo:
        - Hay preview de un archivo elegido -> no se toca.
        - Sin URL -> None.
        - URL externa (ej: Google) -> se usa tal cual, sin cachear.
        - URL de Supabase -> cache si coincide la URL original (incluye
          `?v...`); si no, se descarga y se cachea.
        """
        user_id = _source_user_id(source)
        if not user_id:
            for field in IMAGE_FIELDS:
                self._revoke(field)
                self.image_urls[field] = None
            return dict(self.image_urls)

        file_previews = file_previews or {}

        for field in IMAGE_FIELDS:
            if file_previews.get(field):
                continue

            image_url = _source_attr(source, field)
            if not image_url:
                self._revoke(field)
                self.image_urls[field] = None
                continue

            if not is_supabase_url(image_url):
                self._revoke(field)
                self.image_urls[field] = image_url
                continue

            image_type = FIELD_IMAGE_TYPES[field]
            record = get_cached_image_record(cache_key(image_type, user_id))
            if record and record.original_url == image_url and record.blob:
                self._set_object_url(field, record)
                continue

            fetched = fetch_and_cache_image(image_url, image_type, user_id)
            if fetched is None or not fetched.blob:
                self.handle_error(field)
            else:
                self._set_object_url(field, fetched)

        return dict(self.image_urls)

    def handle_error(self, field: str) -> None:
        """Marca el campo como fallido: se muestra el placeholder."""
        self._revoke(field)
        self.image_error[field] = True
        self.image_urls[field] = None

    def placeholder(self, field: str, display_name: Optional[str]) -> Dict[str, Optional[str]]:
        """Lo que se muestra cuando no hay imagen: iniciales o gradiente."""
        if field == "avatar_photo":
            return {"kind": "initials", "value": initials(display_name) or None}
        return {"kind": "gradient", "value": None}

    def close(self) -> None:
        """Revoca todas las object URLs emitidas."""
        for field in IMAGE_FIELDS:
            self._revoke(field)
