# gitgrub/config.py
from dataclasses import dataclass
from functools import lru_cache
import os

from dotenv import load_dotenv

"""
gitgrub.config
==============

Gestión centralizada de configuración del cliente GitGrub.

Este módulo define:
- La estructura de configuración (`Settings`)
- El mecanismo para cargar variables desde entorno (.env)
- Un acceso único y cacheado a la configuración (`get_settings`)

Convenciones
------------
- Las variables de entorno se cargan desde un archivo `.env` si existe.
- Los defaults están pensados para desarrollo local.
- Si falta una credencial de Supabase, NO se falla acá: el error se lanza
  en `gitgrub.backend` cuando alguien intenta hablar con el backend.
"""

# Cargar variables de entorno desde .env (si existe)
load_dotenv()


@dataclass
class Settings:
    """
    Contenedor tipado de configuración global.

    Attributes
    ----------
    supabase_url:
        URL base del proyecto Supabase (ej: https://xyz.supabase.co).
    supabase_anon_key:
        Clave pública (anon). Todas las llamadas se hacen con el token del
        usuario encima de esta clave, así RLS sigue aplicando.
    supabase_jwt_secret:
        Secreto JWT del proyecto. Si está vacío, los tokens se decodifican
        sin verificar la firma.
    image_cache_url:
        URL SQLAlchemy del cache local de imágenes.
    page_size:
        Cantidad de recetas por página en explorar.
    search_debounce_seconds:
        Ventana de debounce para la búsqueda por título.
    notification_duration_ms:
        Duración por defecto de una notificación transitoria.
    recipe_detail_stale_seconds:
        Tiempo durante el cual un detalle de receta se considera fresco.
    """

    supabase_url: str
    supabase_anon_key: str
    supabase_jwt_secret: str = ""

    image_cache_url: str = "sqlite:///data/gitgrub_cache.sqlite"

    page_size: int = 12
    search_debounce_seconds: float = 0.3
    notification_duration_ms: int = 4000
    recipe_detail_stale_seconds: int = 60 * 10
    image_fetch_timeout: float = 15.0


@lru_cache
def get_settings() -> Settings:
    """
    Devuelve una instancia única y cacheada de `Settings`.

    Variables de entorno utilizadas
    -------------------------------
    - SUPABASE_URL
    - SUPABASE_ANON_KEY
    - SUPABASE_JWT_SECRET (opcional)
    - IMAGE_CACHE_URL (default: sqlite:///data/gitgrub_cache.sqlite)
    - EXPLORE_PAGE_SIZE (default: 12)
    - IMAGE_FETCH_TIMEOUT (default: 15 segundos)

    En tests se puede llamar `get_settings.cache_clear()` después de
    modificar el entorno.
    """
    return Settings(
        supabase_url=os.getenv("SUPABASE_URL", "").rstrip("/"),
        supabase_anon_key=os.getenv("SUPABASE_ANON_KEY", ""),
        supabase_jwt_secret=os.getenv("SUPABASE_JWT_SECRET", ""),
        image_cache_url=os.getenv(
            "IMAGE_CACHE_URL",
            "sqlite:///data/gitgrub_cache.sqlite",
        ),
        page_size=int(os.getenv("EXPLORE_PAGE_SIZE", "12")),
        image_fetch_timeout=float(os.getenv("IMAGE_FETCH_TIMEOUT", "15")),
    )
