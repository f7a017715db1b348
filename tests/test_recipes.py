"""
Tests de recetas: detalle, versiones, alta, edición, fork y borrado.

Prueba:
- Detalle vía RPC (con cache y la variante `latestversion`)
- Selección de versión con `?v=`
- Ownership en edición y borrado
- Edición = versión nueva (número asignado por el trigger)
- Limpieza del fork cuando la v1 falla
"""

from types import SimpleNamespace

import pytest

from gitgrub import recipes
from gitgrub.backend import BackendError, NotFoundError
from gitgrub.domain_models import Recipe, RecipeFormValues, RecipeVersion
from gitgrub.recipes import (
    create_recipe,
    delete_recipe,
    fork_recipe,
    fork_seed,
    get_recipe_detail,
    invalidate_recipe_detail,
    is_dirty,
    list_versions,
    load_for_edit,
    parse_lines,
    parse_tags,
    recipe_actions,
    save_new_version,
    select_version,
    validate_form,
)


def _detail_payload(latest_key="latestVersion"):
    return {
        "recipe": {
            "id": "r1",
            "user_id": "u1",
            "title": "Pasta Carbonara",
            "tags": ["italian"],
            "like_count": 3,
            "version_count": 2,
            "fork_count": 1,
            "liked_by_me": True,
            "author": {"id": "u1", "display_name": "Ada"},
        },
        latest_key: {
            "id": "v2",
            "recipe_id": "r1",
            "version_no": 2,
            "ingredients": ["pasta", "eggs"],
            "steps": ["boil"],
            "notes": None,
        },
        "forks": [{"id": "r9", "title": "Fork of Pasta Carbonara", "author": [{"id": "u2"}]}],
    }


@pytest.fixture
def detail_rpc(fake_supabase):
    fake_supabase.rpc_handlers["rpc_recipe_detail"] = lambda params: _detail_payload()
    return fake_supabase


def _form(**overrides):
    values = {
        "title": "Tortilla",
        "tags": ["spanish"],
        "ingredients_text": "eggs\n\npotatoes\n",
        "steps_text": "fry\nflip",
        "notes": "",
    }
    values.update(overrides)
    return RecipeFormValues(**values)


# ---------------------------------------------------------------------------
# Formulario
# ---------------------------------------------------------------------------

def test_parse_lines_and_tags_drop_blank_entries():
    assert parse_lines("  eggs \n\n potatoes\r\n") == ["eggs", "potatoes"]
    assert parse_tags("italian, pasta,, quick ") == ["italian", "pasta", "quick"]


def test_validate_form_splits_comma_separated_tags():
    values = validate_form(_form(tags=["italian, pasta", " quick ", ""]))
    assert values.tags == ["italian", "pasta", "quick"]


def test_validate_form_requires_title():
    with pytest.raises(ValueError, match="Title is required"):
        validate_form(_form(title="   "))


def test_is_dirty_ignores_line_ending_differences():
    initial = _form(ingredients_text="eggs\npotatoes")
    assert not is_dirty(_form(ingredients_text="eggs\r\npotatoes"), initial)
    assert is_dirty(_form(ingredients_text="eggs\r\npotatoes", title="Other"), initial)


# ---------------------------------------------------------------------------
# Detalle y versiones
# ---------------------------------------------------------------------------

def test_get_recipe_detail_parses_rpc(detail_rpc):
    detail = get_recipe_detail(detail_rpc, "r1", "u2")

    assert detail.recipe.title == "Pasta Carbonara"
    assert detail.recipe.liked_by_me is True
    assert detail.recipe.author.display_name == "Ada"
    assert detail.latest_version.version_no == 2
    assert [f.id for f in detail.forks] == ["r9"]
    assert detail.forks[0].author.id == "u2"


def test_get_recipe_detail_accepts_lowercase_latestversion(fake_supabase):
    fake_supabase.rpc_handlers["rpc_recipe_detail"] = lambda params: _detail_payload("latestversion")
    assert get_recipe_detail(fake_supabase, "r1").latest_version.id == "v2"


def test_get_recipe_detail_is_cached_until_invalidated(detail_rpc):
    get_recipe_detail(detail_rpc, "r1", "u2")
    get_recipe_detail(detail_rpc, "r1", "u2")
    assert detail_rpc.calls.count(("rpc", "rpc_recipe_detail")) == 1

    invalidate_recipe_detail("r1")
    get_recipe_detail(detail_rpc, "r1", "u2")
    assert detail_rpc.calls.count(("rpc", "rpc_recipe_detail")) == 2


def test_get_recipe_detail_drops_stale_entries(detail_rpc, monkeypatch):
    clock = [1000.0]
    monkeypatch.setattr(recipes, "time", SimpleNamespace(monotonic=lambda: clock[0]))

    get_recipe_detail(detail_rpc, "r1", "u2")
    get_recipe_detail(detail_rpc, "r1", "u3")
    assert len(recipes._detail_cache) == 2

    clock[0] += 60 * 10 + 1
    get_recipe_detail(detail_rpc, "r1", "u4")
    assert list(recipes._detail_cache) == [("r1", "u4")]


def test_get_recipe_detail_not_found(fake_supabase):
    fake_supabase.rpc_handlers["rpc_recipe_detail"] = lambda params: None
    with pytest.raises(NotFoundError):
        get_recipe_detail(fake_supabase, "missing")


def test_list_versions_newest_first(recipe_rows):
    versions = list_versions(recipe_rows, "r1")
    assert [v.version_no for v in versions] == [2, 1]


def test_select_version_falls_back_to_latest():
    versions = [
        RecipeVersion(id="v2", recipe_id="r1", version_no=2),
        RecipeVersion(id="v1", recipe_id="r1", version_no=1),
    ]
    assert select_version(versions, 1).id == "v1"
    assert select_version(versions, None).id == "v2"
    assert select_version(versions, 7).id == "v2"
    assert select_version([], 1) is None


# ---------------------------------------------------------------------------
# Escritura
# ---------------------------------------------------------------------------

def test_create_recipe_inserts_recipe_and_v1(fake_supabase):
    recipe_id = create_recipe(fake_supabase, "u1", _form())

    recipe = fake_supabase.tables["recipes"][0]
    assert recipe["id"] == recipe_id
    assert recipe["user_id"] == "u1"
    version = fake_supabase.tables["recipe_versions"][0]
    assert version["recipe_id"] == recipe_id
    assert version["version_no"] == 1
    assert version["ingredients"] == ["eggs", "potatoes"]
    assert version["notes"] is None


def test_create_recipe_requires_session(fake_supabase):
    with pytest.raises(PermissionError):
        create_recipe(fake_supabase, None, _form())
    assert fake_supabase.calls == []


def test_load_for_edit_returns_latest_version(recipe_rows):
    values, current_no = load_for_edit(recipe_rows, "r1", "u1")

    assert current_no == 2
    assert values.title == "Pasta Carbonara"
    assert values.ingredients_text == "pasta\neggs\nguanciale"
    assert values.notes == "no cream"


def test_load_for_edit_rejects_non_owner(recipe_rows):
    with pytest.raises(PermissionError):
        load_for_edit(recipe_rows, "r1", "u2")


def test_save_new_version_appends_version(recipe_rows):
    new_no = save_new_version(recipe_rows, "r1", "u1", _form(title="Carbonara v3"))

    assert new_no == 3
    assert recipe_rows.tables["recipes"][0]["title"] == "Carbonara v3"
    assert len(recipe_rows.tables["recipe_versions"]) == 3


def test_save_new_version_invalidates_cached_detail(recipe_rows):
    recipe_rows.rpc_handlers["rpc_recipe_detail"] = lambda params: _detail_payload()
    get_recipe_detail(recipe_rows, "r1", "u1")

    save_new_version(recipe_rows, "r1", "u1", _form())
    get_recipe_detail(recipe_rows, "r1", "u1")

    assert recipe_rows.calls.count(("rpc", "rpc_recipe_detail")) == 2


def test_fork_seed_titles():
    base = RecipeVersion(id="v1", recipe_id="r1", version_no=1, ingredients=["a", "b"], steps=["c"], notes="n")
    seed = fork_seed("Soup", ["warm"], base)

    assert seed.title == "Fork of Soup"
    assert seed.ingredients_text == "a\nb"
    assert seed.notes == "n"
    assert fork_seed(None, None, None).title == "Forked Recipe"


def test_fork_recipe_links_parent(recipe_rows):
    new_id = fork_recipe(recipe_rows, "r1", "u2", _form(title="Fork of Pasta Carbonara"))

    fork = next(r for r in recipe_rows.tables["recipes"] if r["id"] == new_id)
    assert fork["forked_from"] == "r1"
    assert fork["user_id"] == "u2"
    versions = [v for v in recipe_rows.tables["recipe_versions"] if v["recipe_id"] == new_id]
    assert [v["version_no"] for v in versions] == [1]


def test_fork_recipe_deletes_new_recipe_when_v1_fails(recipe_rows):
    recipe_rows.failures[("recipe_versions", "insert")] = "version insert failed"

    with pytest.raises(BackendError, match="version insert failed"):
        fork_recipe(recipe_rows, "r1", "u2", _form())

    assert [r["id"] for r in recipe_rows.tables["recipes"]] == ["r1"]
    assert ("recipes", "delete") in recipe_rows.calls


def test_fork_cleanup_failure_keeps_version_error(recipe_rows):
    recipe_rows.failures[("recipe_versions", "insert")] = "version insert failed"
    recipe_rows.failures[("recipes", "delete")] = "cleanup failed"

    with pytest.raises(BackendError, match="version insert failed"):
        fork_recipe(recipe_rows, "r1", "u2", _form())

    assert ("recipes", "delete") in recipe_rows.calls


def test_own_recipe_can_be_forked(recipe_rows):
    new_id = fork_recipe(recipe_rows, "r1", "u1", _form())
    assert new_id != "r1"


def test_delete_recipe_owner_only(recipe_rows):
    with pytest.raises(PermissionError):
        delete_recipe(recipe_rows, "r1", "u2")
    assert len(recipe_rows.tables["recipes"]) == 1

    delete_recipe(recipe_rows, "r1", "u1")
    assert recipe_rows.tables["recipes"] == []


def test_delete_missing_recipe(fake_supabase):
    with pytest.raises(NotFoundError):
        delete_recipe(fake_supabase, "nope", "u1")


# ---------------------------------------------------------------------------
# Acciones
# ---------------------------------------------------------------------------

def test_recipe_actions_by_viewer():
    recipe = Recipe(id="r1", user_id="u1", title="Soup", like_count=4, forked_from="r0")

    owner = recipe_actions(recipe, "u1", "https://gitgrub.app/recipes/r1")
    assert owner["can_edit"] and owner["can_delete"]
    assert not owner["can_like"]

    other = recipe_actions(recipe, "u2", "https://gitgrub.app/recipes/r1")
    assert other["can_like"] and other["can_fork"]
    assert not other["can_edit"]
    assert other["view_original"] == "r0"

    anonymous = recipe_actions(recipe, None, "https://gitgrub.app/recipes/r1")
    assert anonymous["static_like_count"] == 4
    assert not anonymous["can_fork"]
    assert anonymous["share"]["title"] == "Soup · GitGrub"
