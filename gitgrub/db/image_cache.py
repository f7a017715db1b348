"""
Funciones helper del cache local de imágenes.

Estas funciones facilitan:
- Guardar una imagen bajo su clave (reemplazando la anterior)
- Leer/borrar por clave, por dueño o todo el cache
- Respetar el límite de imágenes por tipo (se expulsan las más viejas)
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import delete, select

from ..domain_models import get_image_type
from .database import get_db_session
from .models import ImageRecord

_stamp_lock = threading.Lock()
_last_stamp = 0.0


def _stamp() -> float:
    # Estrictamente creciente dentro del proceso, para que el orden de
    # expulsión no dependa de la resolución del reloj.
    global _last_stamp
    with _stamp_lock:
        now = time.time()
        if now <= _last_stamp:
            now = _last_stamp + 1e-6
        _last_stamp = now
        return now


def cache_key(image_type: str, image_source_id: str) -> str:
    """Clave del cache: `"{image_type}-{image_source_id}"`."""
    return f"{image_type}-{image_source_id}"


@dataclass
class CachedImage:
    """Copia desacoplada de un `ImageRecord` (válida fuera de la sesión)."""
    url: str
    original_url: str
    image_source_id: str
    image_type: str
    blob: Optional[bytes]
    content_type: str
    timestamp: float

    @classmethod
    def from_record(cls, record: ImageRecord) -> "CachedImage":
        return cls(
            url=record.url,
            original_url=record.original_url,
            image_source_id=record.image_source_id,
            image_type=record.image_type,
            blob=record.blob,
            content_type=record.content_type,
            timestamp=record.timestamp,
        )


def cache_image(
    image_type: str,
    image_source_id: str,
    blob: bytes,
    original_url: str,
    content_type: str = "application/octet-stream",
) -> CachedImage:
    """
    Guarda (o reemplaza) la imagen de un dueño y aplica el límite del tipo.

    Args:
        image_type: Tipo de imagen (ej: "UserAvatarPhoto")
        image_source_id: Dueño de la imagen (ej: id del usuario)
        blob: Bytes de la imagen
        original_url: URL pública completa (incluye `?v...`)
        content_type: MIME type de la imagen

    Returns:
        La imagen cacheada
    """
    spec = get_image_type(image_type)
    key = cache_key(image_type, image_source_id)

    with get_db_session() as session:
        session.execute(delete(ImageRecord).where(ImageRecord.url == key))
        record = ImageRecord(
            url=key,
            original_url=original_url,
            image_source_id=image_source_id,
            image_type=image_type,
            blob=blob,
            content_type=content_type or "application/octet-stream",
            timestamp=_stamp(),
        )
        session.add(record)
        session.flush()
        cached = CachedImage.from_record(record)

        _enforce_image_type_limit(session, image_type, spec.cache_limit)

    return cached


def _enforce_image_type_limit(session, image_type: str, limit: int) -> List[str]:
    records = session.scalars(
        select(ImageRecord)
        .where(ImageRecord.image_type == image_type)
        .order_by(ImageRecord.timestamp.asc())
    ).all()

    evicted: List[str] = []
    if len(records) > limit:
        for record in records[: len(records) - limit]:
            evicted.append(record.url)
            session.delete(record)
    return evicted


def get_cached_image_record(key: str) -> Optional[CachedImage]:
    """Devuelve la imagen cacheada bajo `key`, o None."""
    with get_db_session() as session:
        record = session.get(ImageRecord, key)
        return CachedImage.from_record(record) if record else None


def get_cached_image(image_type: str, image_source_id: str) -> Optional[CachedImage]:
    return get_cached_image_record(cache_key(image_type, image_source_id))


def delete_cached_image(image_type: str, image_source_id: str) -> None:
    with get_db_session() as session:
        session.execute(
            delete(ImageRecord).where(ImageRecord.url == cache_key(image_type, image_source_id))
        )


def delete_cached_images_by_source_id(image_source_id: str) -> int:
    """Borra todas las imágenes de un dueño. Devuelve cuántas borró."""
    with get_db_session() as session:
        result = session.execute(
            delete(ImageRecord).where(ImageRecord.image_source_id == image_source_id)
        )
        return result.rowcount or 0


def delete_all_cached_images() -> None:
    with get_db_session() as session:
        session.execute(delete(ImageRecord))


def list_cached_images(image_type: Optional[str] = None) -> List[CachedImage]:
    """Lista el contenido del cache (más nuevo primero)."""
    with get_db_session() as session:
        query = select(ImageRecord).order_by(ImageRecord.timestamp.desc())
        if image_type:
            query = query.where(ImageRecord.image_type == image_type)
        return [CachedImage.from_record(r) for r in session.scalars(query).all()]
