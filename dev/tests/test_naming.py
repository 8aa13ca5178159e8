from __future__ import annotations

import pytest

from mod_intake.core.naming import (
    DISABLED_PREFIX,
    base_key,
    complementary_name,
    disabled_name,
    enabled_name,
    is_disabled_name,
    normalize_display_name,
    preprocess_text,
    sanitize_folder_name,
    toggle_disabled,
)


@pytest.mark.parametrize(
    "name",
    ["DISABLED Albedo", "disabled_Albedo", "DISABLE-Albedo", "dis Albedo", "Disabled   Albedo"],
)
def test_disabled_prefix_variants(name):
    assert is_disabled_name(name)
    assert enabled_name(name) == "Albedo"


@pytest.mark.parametrize("name", ["Albedo", "Dishonored Skin", "Disabledish", "discord-bot"])
def test_names_without_separator_are_enabled(name):
    assert not is_disabled_name(name)


def test_normalize_display_name_strips_marker_and_noise_tag():
    assert normalize_display_name("DISABLED [Mod] Raiden Shogun ") == "Raiden Shogun"
    assert normalize_display_name("  Kazuha  ") == "Kazuha"


def test_base_key_is_shared_by_both_variants():
    assert base_key("DISABLED Albedo") == base_key("albedo")


def test_toggle_disabled_round_trip():
    disabled = toggle_disabled("C:\\Mods\\Albedo", enable=False)
    assert disabled == f"C:/Mods/{DISABLED_PREFIX}Albedo"
    assert toggle_disabled(disabled, enable=True) == "C:/Mods/Albedo"


def test_toggle_is_idempotent_per_direction():
    assert toggle_disabled("/m/Albedo", enable=True) == "/m/Albedo"
    assert toggle_disabled("/m/disabled_Albedo", enable=False) == "/m/disabled_Albedo"


def test_complementary_name():
    assert complementary_name("Albedo") == "DISABLED Albedo"
    assert complementary_name("dis_Albedo") == "Albedo"
    assert disabled_name("DISABLED Albedo") == "DISABLED Albedo"


def test_sanitize_folder_name_replaces_forbidden_characters():
    assert sanitize_folder_name('A/B:C*?"<>|') == "A_B_C______"


def test_preprocess_text_tokens():
    assert preprocess_text("Raiden_Shogun (Élégant) v2") == {"raiden", "shogun", "elegant", "v2"}
