#!/usr/bin/env python3
"""
Diagnóstico rápido del entorno de GitGrub.

Revisa que estén instaladas las librerías, que el .env tenga las credenciales
de Supabase, que el cache de imágenes se pueda abrir y que la app FastAPI
arranque con todas sus rutas.

Ejecutar: python tools/check_api.py
"""

import importlib
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# (módulo a importar, nombre en PyPI)
REQUIRED = [
    ("fastapi", "fastapi"),
    ("uvicorn", "uvicorn"),
    ("multipart", "python-multipart"),
    ("supabase", "supabase"),
    ("sqlalchemy", "sqlalchemy"),
    ("jwt", "pyjwt"),
    ("requests", "requests"),
    ("dotenv", "python-dotenv"),
]


def check_libraries() -> bool:
    print("📦 Librerías:")
    ok = True
    for module_name, dist_name in REQUIRED:
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            print(f"   ❌ {dist_name}: {e}")
            ok = False
            continue
        print(f"   ✅ {dist_name} {getattr(module, '__version__', '')}".rstrip())
    return ok


def check_settings() -> bool:
    from gitgrub.config import get_settings

    settings = get_settings()
    print("\n⚙️  Configuración:")
    if not settings.supabase_url or not settings.supabase_anon_key:
        print("   ❌ Faltan SUPABASE_URL / SUPABASE_ANON_KEY en el .env")
        return False
    print(f"   ✅ Supabase: {settings.supabase_url}")
    if not settings.supabase_jwt_secret:
        print("   ⚠️  SUPABASE_JWT_SECRET vacío: los tokens no se verifican")
    return True


def check_image_cache() -> bool:
    from gitgrub.db.image_cache import list_cached_images

    print("\n🗄️  Cache de imágenes:")
    try:
        count = len(list_cached_images())
    except Exception as e:
        print(f"   ❌ No se pudo abrir el cache: {e}")
        return False
    print(f"   ✅ {count} imágenes cacheadas")
    return True


def check_app() -> bool:
    print("\n🚀 App FastAPI:")
    try:
        from api.main import app
    except Exception as e:
        print(f"   ❌ Error creando la app: {e}")
        return False
    paths = sorted({route.path for route in app.routes if route.path.startswith("/api/v1")})
    print(f"   ✅ {app.title} v{app.version}, {len(paths)} rutas bajo /api/v1")
    return True


if __name__ == "__main__":
    results = [check_libraries(), check_settings(), check_image_cache(), check_app()]
    if not all(results):
        print("\n❌ Hay problemas para resolver antes de levantar la API.")
        sys.exit(1)
    print("\n✅ Todo listo. Para levantar el servidor:")
    print("   python run_api.py")
