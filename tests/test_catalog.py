from __future__ import annotations

import json
from copy import deepcopy
from pathlib import Path

import pytest
import yaml

from conftest import farm_content, ladder, tier
from hackstead.catalog import (
    Catalog,
    GotchiArchetype,
    KeepsakeArchetype,
    SeedArchetype,
    get_catalog,
    init_catalog,
    load_catalog,
)
from hackstead.const import Category
from hackstead.exceptions import ConfigError, LadderError, UnknownArchetypeError
from hackstead.spawning import Recipe
from hackstead.summaries import Craft, Neighbor, Yield


def test_shipped_content_loads(shipped_catalog) -> None:
    bractus = shipped_catalog.find_plant("Bractus")
    assert bractus.base_yield_duration == 60
    assert len(bractus.advancements) == 4
    assert isinstance(bractus.advancements.get(2).kind, Neighbor)

    hackpheus = shipped_catalog.find_possession("Hackpheus")
    assert isinstance(hackpheus.kind, GotchiArchetype)
    assert hackpheus.category is Category.GOTCHI
    assert hackpheus.plant_effects[0] == "Bractus"

    seed = shipped_catalog.find_possession("Bractus Seed")
    assert isinstance(seed.kind, SeedArchetype)
    assert seed.category is Category.MISC
    assert seed.plant_effects is None

    dirt = shipped_catalog.find_possession("Bag of Dirt")
    assert dirt.keepsake is not None
    assert dirt.keepsake.unlocks_land.requires_xp is True

    assert len(shipped_catalog.profile_advancements) == 4
    assert shipped_catalog.special_users == ("U013STH0TNG",)


def test_yield_and_recipe_names_resolve_to_handles(shipped_catalog) -> None:
    base = shipped_catalog.find_plant("Bractus").advancements.base
    assert isinstance(base.kind, Yield)
    rate, handle = base.kind.resources[0]
    assert handle == shipped_catalog.find_possession_handle("Bractus Bulb")

    roaster = shipped_catalog.find_plant("Coffea Cyl Baccca").advancements.get(2)
    assert isinstance(roaster.kind, Craft)
    for recipe in roaster.kind.recipes:
        assert isinstance(recipe, Recipe)
        assert all(isinstance(h, int) for h in recipe.handles())


def test_unknown_names_raise() -> None:
    catalog = Catalog.from_raw(**farm_content())
    with pytest.raises(UnknownArchetypeError) as err:
        catalog.find_plant_handle("Oak")
    assert err.value.name == "Oak"
    assert isinstance(err.value, ConfigError)
    assert isinstance(err.value, LookupError)
    with pytest.raises(UnknownArchetypeError):
        catalog.find_possession("Oak")
    assert catalog.plant(5) is None
    assert catalog.possession(-1) is None


def test_yield_of_unknown_item_fails_load() -> None:
    content = farm_content(
        plant_tiers=(
            tier({"Yield": [[[1, [1, 1]], "Ghost Pepper"]]}, 0),
            tier({"Xp": 1.1}, 5),
        )
    )
    with pytest.raises(UnknownArchetypeError) as err:
        Catalog.from_raw(**content)
    assert err.value.name == "Ghost Pepper"


def test_craft_of_unknown_item_fails_load() -> None:
    content = farm_content(
        plant_tiers=(
            tier({"Xp": 1.0}, 0),
            tier({"Craft": [{"needs": [[1, "Leaf"]], "makes": {"AllOf": [[1, "Ghost"]]}, "time": 3}]}, 5),
        )
    )
    with pytest.raises(UnknownArchetypeError):
        Catalog.from_raw(**content)


def test_duplicate_names_rejected() -> None:
    content = farm_content()
    content["possession_archetypes"].append(deepcopy(content["possession_archetypes"][0]))
    with pytest.raises(ConfigError, match="duplicate"):
        Catalog.from_raw(**content)


def test_flat_ladder_without_base_rejected() -> None:
    content = farm_content()
    content["hackstead_advancements"] = [tier({"Land": 1}, 5), tier({"Land": 1}, 10)]
    with pytest.raises(LadderError):
        Catalog.from_raw(**content)


def test_flat_ladder_finds_its_base() -> None:
    content = farm_content()
    content["hackstead_advancements"] = [tier({"Land": 1}, 10, "Later"), tier({"Land": 1}, 0, "First")]
    catalog = Catalog.from_raw(**content)
    assert catalog.profile_advancements.base.title == "First"
    assert [t.title for t in catalog.profile_advancements.rest] == ["Later"]


def test_non_increasing_ladder_rejected() -> None:
    content = farm_content(plant_tiers=(tier({"Xp": 1.0}, 0), tier({"Xp": 1.0}, 4), tier({"Xp": 1.0}, 4)))
    with pytest.raises(LadderError):
        Catalog.from_raw(**content)


def test_seed_for_unknown_plant_rejected() -> None:
    content = farm_content()
    content["possession_archetypes"].append({"name": "Oak Seed", "kind": {"Seed": {"grows_into": "Oak"}}})
    with pytest.raises(ConfigError, match="Oak"):
        Catalog.from_raw(**content)


def test_plant_effects_for_unknown_plant_rejected() -> None:
    content = farm_content()
    content["possession_archetypes"].append(
        {
            "name": "Charm",
            "kind": {"Keepsake": {"plant_effects": ["Oak", tier({"Xp": 2.0}, 0)]}},
        }
    )
    with pytest.raises(UnknownArchetypeError):
        Catalog.from_raw(**content)


def test_plant_effects_are_parsed() -> None:
    content = farm_content()
    content["possession_archetypes"].append(
        {
            "name": "Charm",
            "kind": {"Keepsake": {"plant_effects": ["Sprout", tier({"Xp": 2.0}, 0, "Lucky")]}},
        }
    )
    catalog = Catalog.from_raw(**content)
    charm = catalog.find_possession("Charm")
    assert isinstance(charm.kind, KeepsakeArchetype)
    target, adv = charm.plant_effects
    assert target == "Sprout"
    assert adv.title == "Lucky"


def test_schema_violations_are_config_errors() -> None:
    content = farm_content()
    del content["plant_archetypes"][0]["advancements"]["base"]["title"]
    with pytest.raises(ConfigError, match="plant archetypes"):
        Catalog.from_raw(**content)

    content = farm_content()
    content["plant_archetypes"][0]["base_yield_duration"] = 0
    with pytest.raises(ConfigError):
        Catalog.from_raw(**content)


def test_invalid_kind_is_config_error() -> None:
    content = farm_content(plant_tiers=(tier({"Sunshine": 2}, 0),))
    with pytest.raises(ConfigError, match="invalid kind"):
        Catalog.from_raw(**content)


def _write_content(directory: Path, *, yaml_plants: bool = False) -> None:
    content = farm_content()
    directory.mkdir(parents=True, exist_ok=True)
    for stem in ("hackstead_advancements", "possession_archetypes", "special_users"):
        (directory / f"{stem}.json").write_text(json.dumps(content[stem]), encoding="utf-8")
    if yaml_plants:
        (directory / "plant_archetypes.yaml").write_text(yaml.safe_dump(content["plant_archetypes"]), encoding="utf-8")
    else:
        (directory / "plant_archetypes.json").write_text(json.dumps(content["plant_archetypes"]), encoding="utf-8")


def test_load_catalog_from_directory(tmp_path: Path) -> None:
    _write_content(tmp_path, yaml_plants=True)
    catalog = load_catalog(tmp_path)
    assert catalog.find_plant("Sprout").advancements.thresholds == [0, 1, 2]


def test_special_users_file_is_optional(tmp_path: Path) -> None:
    _write_content(tmp_path)
    (tmp_path / "special_users.json").unlink()
    assert load_catalog(tmp_path).special_users == ()


def test_missing_content_file(tmp_path: Path) -> None:
    _write_content(tmp_path)
    (tmp_path / "plant_archetypes.json").unlink()
    with pytest.raises(ConfigError, match="plant_archetypes"):
        load_catalog(tmp_path)


def test_malformed_content_file(tmp_path: Path) -> None:
    _write_content(tmp_path)
    (tmp_path / "possession_archetypes.json").write_text("[{", encoding="utf-8")
    with pytest.raises(ConfigError, match="Invalid JSON"):
        load_catalog(tmp_path)


def test_overlay_directory_wins(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    base = tmp_path / "base"
    overlay = tmp_path / "overlay"
    _write_content(base)
    overlay.mkdir()
    plants = farm_content()["plant_archetypes"]
    plants[0]["name"] = "Overlay Sprout"
    (overlay / "plant_archetypes.json").write_text(json.dumps(plants), encoding="utf-8")
    seeds = farm_content()["possession_archetypes"]
    seeds[2]["kind"]["Seed"]["grows_into"] = "Overlay Sprout"
    (overlay / "possession_archetypes.json").write_text(json.dumps(seeds), encoding="utf-8")

    monkeypatch.setenv("HACKSTEAD_OVERLAY_DIR", str(overlay))
    catalog = load_catalog(base)
    assert catalog.find_plant_handle("Overlay Sprout") == 0


def test_data_dir_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write_content(tmp_path)
    monkeypatch.setenv("HACKSTEAD_DATA_DIR", str(tmp_path))
    assert load_catalog().find_plant("Sprout").name == "Sprout"


def test_singleton_lifecycle() -> None:
    with pytest.raises(RuntimeError):
        get_catalog()
    catalog = Catalog.from_raw(**farm_content())
    assert init_catalog(catalog) is catalog
    assert get_catalog() is catalog
    with pytest.raises(RuntimeError):
        init_catalog(catalog)
    other = Catalog.from_raw(**farm_content())
    init_catalog(other, replace=True)
    assert get_catalog() is other


def test_profile_ladder_uses_land_kind() -> None:
    content = farm_content()
    content["hackstead_advancements"] = ladder(tier({"Land": {"pieces": 2}}, 0), tier({"Land": 3}, 10))
    catalog = Catalog.from_raw(**content)
    assert catalog.profile_advancements.sum(10).land == 5
