"""
Modelos del cache local de imágenes.
"""

from __future__ import annotations

import time
from typing import Optional

from sqlalchemy import Float, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class ImageRecord(Base):
    """
    Imagen cacheada.

    La clave es `"{image_type}-{image_source_id}"`: hay como máximo una imagen
    por tipo y por dueño. `original_url` incluye el sufijo de versión (`?v...`)
    para detectar cuándo la imagen remota cambió.
    """
    __tablename__ = "images"

    url: Mapped[str] = mapped_column(String(200), primary_key=True)
    original_url: Mapped[str] = mapped_column(Text)
    image_source_id: Mapped[str] = mapped_column(String(64), index=True)
    image_type: Mapped[str] = mapped_column(String(40), index=True)

    blob: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=True)
    content_type: Mapped[str] = mapped_column(String(100), default="application/octet-stream")

    # Segundos desde epoch; ordena la expulsión (más viejo primero)
    timestamp: Mapped[float] = mapped_column(Float, default=time.time, index=True)
