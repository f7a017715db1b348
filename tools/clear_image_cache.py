"""
Script para limpiar el cache local de imágenes.

Por defecto vacía la tabla de imágenes. Con `--user` solo borra las imágenes
de ese usuario; con `--drop` elimina la base entera (tablas y archivo SQLite).

Uso:
    python tools/clear_image_cache.py [--user USER_ID] [--drop] [--yes]
"""

import sys
import argparse
from pathlib import Path

# Agregar el directorio raíz al path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gitgrub.config import get_settings
from gitgrub.db.database import delete_cache_database
from gitgrub.db.image_cache import (
    delete_all_cached_images,
    delete_cached_images_by_source_id,
    list_cached_images,
)


def clear_image_cache(user_id: str = None, drop: bool = False, yes: bool = False):
    """Borra imágenes del cache local (todas, las de un usuario, o la base entera)."""
    images = list_cached_images()
    if user_id:
        images = [i for i in images if i.image_source_id == user_id]

    print(f"🗄️  Cache: {get_settings().image_cache_url}")
    print(f"📦 Encontradas {len(images)} imágenes")
    for image in images:
        print(f"  - {image.url} ({len(image.blob or b'')} bytes)")

    if not images and not drop:
        print("\n✅ Nada para borrar")
        return

    if not yes:
        accion = "eliminar la base del cache" if drop else "borrar estas imágenes"
        print(f"\n⚠️  Se va a {accion}.")
        response = input("¿Continuar? (s/n): ").strip().lower()
        if response != "s":
            print("❌ Cancelado")
            return

    if drop:
        delete_cache_database()
        print("\n🗑️  Base del cache eliminada")
    elif user_id:
        removed = delete_cached_images_by_source_id(user_id)
        print(f"\n🗑️  {removed} imágenes de {user_id} borradas")
    else:
        delete_all_cached_images()
        print(f"\n🗑️  {len(images)} imágenes borradas")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Limpiar el cache local de imágenes")
    parser.add_argument("--user", default=None, help="Borrar solo las imágenes de este usuario")
    parser.add_argument("--drop", action="store_true", help="Eliminar la base del cache entera")
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Ejecutar sin confirmación interactiva",
    )
    args = parser.parse_args()

    clear_image_cache(user_id=args.user, drop=args.drop, yes=args.yes)
