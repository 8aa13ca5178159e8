from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure repo root on path
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from mod_intake.app.models import CatalogEntity  # noqa: E402


def _make_mod(root: Path, name: str, files: dict | None = None) -> Path:
    folder = root / name
    folder.mkdir(parents=True, exist_ok=True)
    for rel, text in (files or {"mod.ini": "[TextureOverride]\n"}).items():
        target = folder / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
    return folder


@pytest.fixture
def make_mod():
    """Factory: create a mod folder with ``files`` (relative path -> text)."""
    return _make_mod


@pytest.fixture
def catalog() -> list[CatalogEntity]:
    return [
        CatalogEntity(name="Albedo", object_type="Character", tags=("geo",)),
        CatalogEntity(name="Raiden Shogun", object_type="Character"),
        CatalogEntity(name="Skyward Blade", object_type="Weapon"),
        CatalogEntity(name="Kazuha", object_type="Character"),
    ]


@pytest.fixture
def mods_root(tmp_path: Path) -> Path:
    root = tmp_path / "Mods"
    root.mkdir()
    return root
