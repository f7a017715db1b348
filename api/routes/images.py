"""
Endpoints de imágenes de perfil.

Este módulo maneja:
- GET /api/v1/images/profiles/{user_id}: URLs a mostrar para avatar y portada
- DELETE /api/v1/images/profiles/{user_id}: Libera las object URLs de un handle
- GET /api/v1/images/objects/{token}: Sirve el blob de una object URL
- DELETE /api/v1/images/cache/{user_id}: Borra del cache las imágenes del usuario
- DELETE /api/v1/images/cache: Vacía el cache local

Las imágenes de Supabase se sirven desde el cache local (SQLite) a través de
object URLs; las externas (ej: Google) se devuelven tal cual.

Cada carga de un perfil devuelve un `handle` dueño de sus object URLs. El
cliente lo manda de vuelta para recargar (se revocan solo las URLs
reemplazadas de ese handle) o para liberarlo. Otra pestaña u otro visitante
recibe su propio handle, así que no le revoca las URLs a nadie. Los handles
sin uso vencen y hay un máximo en memoria.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from supabase import Client

from gitgrub.db.image_cache import delete_all_cached_images, delete_cached_images_by_source_id
from gitgrub.domain_models import IMAGE_FIELDS
from gitgrub.images import ProfileImages, object_urls
from gitgrub.profiles import get_profile_summary

from ..dependencies import get_backend, get_current_user_id, get_optional_user_id, http_error
from ..models.requests import ProfileImagesResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/images", tags=["images"])

MAX_IMAGE_HANDLES = 256
IMAGE_HANDLE_IDLE_SECONDS = 30 * 60


@dataclass
class ImageHandle:
    """Object URLs emitidas para un cliente que muestra el perfil de `user_id`."""

    viewer_id: Optional[str]
    user_id: str
    images: ProfileImages = field(default_factory=lambda: ProfileImages(object_urls))
    lock: threading.Lock = field(default_factory=threading.Lock)
    last_used: float = field(default_factory=time.monotonic)


_handles: Dict[str, ImageHandle] = {}
_handles_lock = threading.Lock()


def _close(handles: List[ImageHandle]) -> None:
    for handle in handles:
        with handle.lock:
            handle.images.close()


def _evict(now: float) -> List[ImageHandle]:
    """Saca los handles vencidos y, si sobran, los menos usados. Llamar con el lock tomado."""
    expired = [h for h, v in _handles.items() if now - v.last_used >= IMAGE_HANDLE_IDLE_SECONDS]
    overflow = len(_handles) - len(expired) - (MAX_IMAGE_HANDLES - 1)
    if overflow > 0:
        alive = sorted((h for h in _handles if h not in expired), key=lambda h: _handles[h].last_used)
        expired.extend(alive[:overflow])
    return [_handles.pop(h) for h in expired]


def _acquire_handle(handle_id: Optional[str], viewer_id: Optional[str], user_id: str) -> Tuple[str, ImageHandle]:
    now = time.monotonic()
    with _handles_lock:
        handle = _handles.get(handle_id) if handle_id else None
        if handle is not None and (handle.viewer_id != viewer_id or handle.user_id != user_id):
            handle = None
        evicted: List[ImageHandle] = []
        if handle is None:
            evicted = _evict(now)
            handle_id = uuid.uuid4().hex
            handle = _handles[handle_id] = ImageHandle(viewer_id=viewer_id, user_id=user_id)
        handle.last_used = now
    _close(evicted)
    if evicted:
        logger.debug(f"Handles de imágenes liberados por desuso: {len(evicted)}")
    return handle_id, handle


def release_profile_images(
    viewer_id: Optional[str],
    user_id: Optional[str] = None,
    handle_id: Optional[str] = None,
) -> int:
    """
    Revoca las object URLs de un handle, o de todos los handles de un viewer
    con sesión (opcionalmente solo los de un usuario mostrado).

    Sin sesión solo se puede liberar por handle.

    Returns:
        Cantidad de handles liberados
    """
    with _handles_lock:
        if handle_id:
            handle = _handles.get(handle_id)
            matches = (
                handle is not None
                and handle.viewer_id == viewer_id
                and (user_id is None or handle.user_id == user_id)
            )
            keys = [handle_id] if matches else []
        elif viewer_id:
            keys = [
                k for k, h in _handles.items()
                if h.viewer_id == viewer_id and (user_id is None or h.user_id == user_id)
            ]
        else:
            keys = []
        released = [_handles.pop(k) for k in keys]
    _close(released)
    return len(released)


@router.get("/profiles/{user_id}", response_model=ProfileImagesResponse)
def get_profile_images(
    user_id: str,
    handle: Optional[str] = Query(None, description="Handle de una carga anterior del mismo perfil"),
    viewer_id: Optional[str] = Depends(get_optional_user_id),
    client: Client = Depends(get_backend),
):
    """
    Resuelve avatar y portada de un usuario.

    Con `handle` de una carga anterior se reutiliza y solo se revocan las
    object URLs que cambiaron; sin él se emite un handle nuevo.

    Returns:
        Handle, URLs a mostrar, campos con error y placeholders (iniciales / gradiente)
    """
    try:
        profile = get_profile_summary(client, user_id)
    except Exception as e:
        raise http_error(e) from e

    handle_id, image_handle = _acquire_handle(handle, viewer_id, user_id)
    with image_handle.lock:
        images = image_handle.images
        urls = images.load(profile)
        errors = {f: images.image_error[f] for f in IMAGE_FIELDS}
        placeholders = {
            f: images.placeholder(f, profile.display_name)
            for f in IMAGE_FIELDS
            if not urls.get(f)
        }
    return ProfileImagesResponse(
        handle=handle_id,
        avatar_photo=urls.get("avatar_photo"),
        cover_photo=urls.get("cover_photo"),
        errors=errors,
        placeholders=placeholders,
    )


@router.delete("/profiles/{user_id}", status_code=204)
def close_profile_images(
    user_id: str,
    handle: Optional[str] = Query(None, description="Handle a liberar"),
    viewer_id: Optional[str] = Depends(get_optional_user_id),
):
    """
    Libera las object URLs del perfil (el cliente dejó de mostrarlo).

    Con `handle` se libera solo ese; sin él, todos los del viewer con sesión.
    """
    release_profile_images(viewer_id, user_id, handle)


@router.get("/objects/{token}")
def get_object(token: str):
    """
    Sirve el blob detrás de una object URL.

    Raises:
        404: Si la URL fue revocada o nunca existió
    """
    resolved = object_urls.resolve(token)
    if resolved is None:
        raise HTTPException(status_code=404, detail="Object URL no encontrada o revocada")
    blob, content_type = resolved
    return Response(
        content=blob,
        media_type=content_type,
        headers={"Cache-Control": "private, max-age=0, no-store"},
    )


@router.delete("/cache/{user_id}")
def clear_user_cache(
    user_id: str,
    current_user_id: str = Depends(get_current_user_id),
):
    """
    Borra del cache local todas las imágenes de un usuario (solo las propias).

    Raises:
        403: Si se intenta borrar el cache de otro usuario
    """
    if user_id != current_user_id:
        raise HTTPException(status_code=403, detail="Solo podés borrar tus propias imágenes del cache")
    removed = delete_cached_images_by_source_id(user_id)
    logger.info(f"Cache de imágenes de {user_id}: {removed} borradas")
    return {"removed": removed}


@router.delete("/cache", status_code=204)
def clear_cache(current_user_id: str = Depends(get_current_user_id)):
    """Vacía el cache local de imágenes."""
    delete_all_cached_images()
    logger.info(f"Cache de imágenes vaciado por {current_user_id}")
