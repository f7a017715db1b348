# gitgrub/db/database.py
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from ..config import get_settings

"""
gitgrub.db.database
===================

Capa de infraestructura para el cache local de imágenes usando SQLAlchemy.

El cache es un key/value store de blobs (avatars y covers) que evita volver a
descargar imágenes del storage de Supabase. Es local al proceso que corre el
cliente; no es la fuente de verdad de nada.

Este módulo centraliza:
- La URL del cache (`IMAGE_CACHE_URL`, ver `gitgrub.config`).
- La creación lazy del engine y del sessionmaker.
- Un context manager para manejar sesiones (commit / rollback).
- El borrado completo de la base del cache.

Si no se define, se usa por defecto:
    sqlite:///data/gitgrub_cache.sqlite
"""

# Engine y SessionLocal se inicializan de forma lazy
_engine = None
SessionLocal = None


class Base(DeclarativeBase):
    """Clase base para los modelos ORM del cache."""
    pass


def _sqlite_file(url: str) -> Path | None:
    if url.startswith("sqlite:///") and ":memory:" not in url:
        return Path(url.replace("sqlite:///", "", 1))
    return None


def get_db_engine(echo: bool = False):
    """
    Devuelve (y crea si no existe) el Engine global del cache.

    En la primera llamada también crea las tablas (`create_all`), así el cache
    funciona sin un paso de migración aparte.
    """
    global _engine, SessionLocal

    if _engine is None:
        url = get_settings().image_cache_url

        # Si es SQLite en archivo, aseguramos que el directorio exista
        db_file = _sqlite_file(url)
        if db_file is not None:
            db_file.parent.mkdir(parents=True, exist_ok=True)

        _engine = create_engine(url, echo=echo, future=True)
        SessionLocal = sessionmaker(
            bind=_engine,
            autoflush=False,
            autocommit=False,
            future=True,
        )

        # Registrar modelos antes de create_all
        from . import models  # noqa: F401
        Base.metadata.create_all(bind=_engine)

    return _engine


def dispose_db_engine() -> None:
    """Cierra el engine actual; la próxima sesión vuelve a leer la configuración."""
    global _engine, SessionLocal

    if _engine is not None:
        _engine.dispose()
    _engine = None
    SessionLocal = None


@contextmanager
def get_db_session():
    """
    Context manager para manejar una sesión del cache.

    Garantiza commit si no hay errores, rollback ante cualquier excepción y
    cierre de la sesión al final del bloque.

    >>> with get_db_session() as session:
    ...     session.get(ImageRecord, "UserAvatarPhoto-123")
    """
    get_db_engine(echo=False)

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def delete_cache_database() -> None:
    """
    Elimina la base del cache por completo (tablas y archivo SQLite).

    La próxima operación del cache la vuelve a crear vacía.
    """
    url = get_settings().image_cache_url
    engine = get_db_engine()
    Base.metadata.drop_all(bind=engine)
    dispose_db_engine()

    db_file = _sqlite_file(url)
    if db_file is not None and db_file.exists():
        db_file.unlink()
