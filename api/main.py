"""
API HTTP principal para GitGrub.

La app expone el cliente GitGrub (paquete `gitgrub`) como endpoints REST:
explorar, detalle, alta/edición/fork de recetas, likes, follows, perfiles,
imágenes de perfil y notificaciones. Las llamadas al backend van siempre con
el token del usuario que llega en el header Authorization.

Uso:
    uvicorn api.main:app --reload --port 8000
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gitgrub import __version__
from gitgrub.config import get_settings
from gitgrub.db.database import dispose_db_engine, get_db_engine

from .routes import auth, images, notifications, profiles, recipes, social

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_anon_key:
        logger.warning("⚠️  SUPABASE_URL / SUPABASE_ANON_KEY sin configurar: las rutas de datos van a fallar")
    else:
        logger.info(f"🍳 Backend Supabase: {settings.supabase_url}")

    # El cache de imágenes se crea al arrancar para no pagar el create_all en el primer request
    get_db_engine()
    logger.info(f"🗄️  Cache de imágenes: {settings.image_cache_url}")
    yield
    dispose_db_engine()


app = FastAPI(
    title="GitGrub API",
    description="Recetas con versiones y forks, likes y follows sobre Supabase",
    version=__version__,
    lifespan=lifespan,
)

# Orígenes del front (separados por coma)
cors_origins = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if origin.strip()
]
logger.info(f"🌐 CORS origins: {cors_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (auth, recipes, social, profiles, images, notifications):
    app.include_router(module.router)


@app.get("/")
async def root():
    return {"status": "ok", "service": "gitgrub-api"}


@app.get("/health")
async def health():
    """Health check con el estado de la configuración."""
    settings = get_settings()
    return {
        "status": "ok",
        "service": "gitgrub-api",
        "version": __version__,
        "backend_configured": bool(settings.supabase_url and settings.supabase_anon_key),
    }
