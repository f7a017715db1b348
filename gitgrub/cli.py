"""
gitgrub.cli
===========

CLI mínima para inspeccionar el cliente sin levantar la API:

- `explore`: corre una búsqueda de explorar contra Supabase (como anónimo o
  con `--token`) e imprime las tarjetas.
- `recipe`: imprime el detalle de una receta (versión pedida con `-v`).
- `cache list`: lista el cache local de imágenes.
- `cache clear`: borra el cache (todo, o solo las imágenes de `--user`).

Uso:
    python -m gitgrub.cli explore --q pasta --tags italian,quick --sort liked
    python -m gitgrub.cli recipe <recipe_id> -v 2
    python -m gitgrub.cli cache list
    python -m gitgrub.cli cache clear --user <user_id>
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from .backend import get_client, session_user_id
from .db.image_cache import delete_all_cached_images, delete_cached_images_by_source_id, list_cached_images
from .explore import SORT_MODES, ExploreParams, ExploreState
from .formatting import format_count, format_file_size
from .recipes import get_recipe_detail, list_versions, select_version


def _cmd_explore(args: argparse.Namespace) -> int:
    client = get_client(args.token)
    params = ExploreParams(sort=args.sort, q=args.q or "", tags=args.tags.split(",") if args.tags else [])
    state = ExploreState(client, params)
    state.reload()
    for _ in range(args.pages - 1):
        state.load_more()

    if not state.recipes:
        print("No se encontraron recetas.")
        return 0

    for card in state.recipes:
        author = card.author.display_name if card.author else "Unknown Chef"
        tags = " ".join(f"#{t}" for t in card.tags)
        print(f"♥ {format_count(card.like_count):>5}  {card.title}  — {author}  {tags}")
        print(f"         id: {card.id}")
    return 0


def _cmd_recipe(args: argparse.Namespace) -> int:
    client = get_client(args.token)
    detail = get_recipe_detail(client, args.recipe_id, session_user_id(args.token))
    version = select_version(list_versions(client, args.recipe_id), args.version) or detail.latest_version

    recipe = detail.recipe
    print(f"# {recipe.title}  (v{version.version_no})")
    if recipe.tags:
        print(" ".join(f"#{t}" for t in recipe.tags))
    print(f"♥ {format_count(recipe.like_count)}  forks: {len(detail.forks)}")
    print("\n## Ingredientes")
    for line in version.ingredients:
        print(f"- {line}")
    print("\n## Pasos")
    for i, line in enumerate(version.steps, start=1):
        print(f"{i}. {line}")
    if version.notes:
        print(f"\n## Notas\n{version.notes}")
    return 0


def _cmd_cache(args: argparse.Namespace) -> int:
    if args.action == "clear":
        if args.user:
            removed = delete_cached_images_by_source_id(args.user)
            print(f"🗑️  {removed} imágenes de {args.user} borradas del cache.")
        else:
            delete_all_cached_images()
            print("🗑️  Cache vaciado.")
        return 0

    images = list_cached_images(args.image_type)
    if not images:
        print("Cache vacío.")
        return 0
    for image in images:
        size = format_file_size(len(image.blob or b""))
        print(f"{image.url:<50} {size:>10}  {image.original_url}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gitgrub", description="Cliente GitGrub (CLI)")
    parser.add_argument("--token", default=None, help="Access token de Supabase (opcional)")
    sub = parser.add_subparsers(dest="command", required=True)

    explore = sub.add_parser("explore", help="Buscar recetas")
    explore.add_argument("--q", default="", help="Búsqueda por título (mín. 2 caracteres)")
    explore.add_argument("--tags", default="", help="Tags separados por coma")
    explore.add_argument("--sort", choices=SORT_MODES, default="newest")
    explore.add_argument("--pages", type=int, default=1, help="Cantidad de páginas a cargar")
    explore.set_defaults(func=_cmd_explore)

    recipe = sub.add_parser("recipe", help="Ver el detalle de una receta")
    recipe.add_argument("recipe_id")
    recipe.add_argument("-v", "--version", type=int, default=None, help="Número de versión")
    recipe.set_defaults(func=_cmd_recipe)

    cache = sub.add_parser("cache", help="Listar o vaciar el cache local de imágenes")
    cache.add_argument("action", nargs="?", choices=["list", "clear"], default="list")
    cache.add_argument("--user", default=None, help="Con clear: solo las imágenes de este usuario")
    cache.add_argument("--image-type", default=None, choices=["UserAvatarPhoto", "UserCoverPhoto"])
    cache.set_defaults(func=_cmd_cache)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
