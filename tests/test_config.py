# tests/test_config.py
from __future__ import annotations

import json
import re

import pytest

from skyevents.core.validators import (
    InvalidConfigurationError,
    ValidationError,
    parse_elevation,
    parse_latlon,
    validate_max_tries,
    validate_zone,
)
from skyevents.utils.cache import LRUCache
from skyevents.utils.config import (
    AttrDict,
    SearchSettings,
    configure_logging,
    load_config,
    settings_from_config,
    settings_from_env,
)
from skyevents.version import VERSION

YAML = """
data_dir: /srv/skyevents/catalog
observer:
  longitude: -71.48
  latitude: 42.75
search:
  max_tries: 12
  retry_gap_minutes: 4.0
  not_a_setting: 1
"""

_ENV = [
    "SKYEVENTS_DATA_DIR",
    "SKYEVENTS_OBSERVER_JSON",
    "SKYEVENTS_MAX_TRIES",
    "SKYEVENTS_SLICE_MS",
    "SKYEVENTS_ASYNC_YIELD_MS",
    "SKYEVENTS_FIRST_TRY_GAP_MIN",
    "SKYEVENTS_RETRY_GAP_MIN",
    "SKYEVENTS_LOCAL_ECLIPSE_SHIFT_DAYS",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "skyevents.yaml"
    path.write_text(YAML, encoding="utf-8")
    return path


# ─────────────────────────────────────────────────────────────────────────────
# YAML config
# ─────────────────────────────────────────────────────────────────────────────

def test_load_config_attribute_access(clean_env, config_file):
    cfg = load_config(str(config_file))
    assert isinstance(cfg, AttrDict)
    assert cfg.observer.latitude == 42.75
    assert cfg["data_dir"] == "/srv/skyevents/catalog"
    with pytest.raises(AttributeError):
        cfg.missing


def test_env_overrides(clean_env, config_file, tmp_path):
    obs = tmp_path / "observer.json"
    obs.write_text(json.dumps({"latitude": 35.69, "elevation_m": 40}), encoding="utf-8")
    clean_env.setenv("SKYEVENTS_DATA_DIR", "/tmp/elsewhere")
    clean_env.setenv("SKYEVENTS_OBSERVER_JSON", str(obs))

    cfg = load_config(str(config_file))
    assert cfg.data_dir == "/tmp/elsewhere"
    assert cfg.observer == {"longitude": -71.48, "latitude": 35.69, "elevation_m": 40}


def test_empty_yaml(clean_env, tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(str(path)) == {}


# ─────────────────────────────────────────────────────────────────────────────
# Search settings
# ─────────────────────────────────────────────────────────────────────────────

def test_settings_defaults(clean_env):
    s = settings_from_env()
    assert s == SearchSettings()
    assert s.max_tries is None
    assert (s.first_try_gap_minutes, s.retry_gap_minutes) == (0.49, 5.0)
    assert s.local_eclipse_shift_days == 2.0


@pytest.mark.parametrize("raw, expected", [("7", 7), ("none", None), ("Unbounded", None), ("", None)])
def test_max_tries_from_env(clean_env, raw, expected):
    clean_env.setenv("SKYEVENTS_MAX_TRIES", raw)
    assert settings_from_env().max_tries == expected


def test_float_settings_from_env(clean_env):
    clean_env.setenv("SKYEVENTS_SLICE_MS", "20")
    clean_env.setenv("SKYEVENTS_RETRY_GAP_MIN", "2.5")
    s = settings_from_env()
    assert s.slice_ms == 20.0
    assert s.retry_gap_minutes == 2.5


def test_settings_from_config_overlays_known_keys(clean_env, config_file):
    s = settings_from_config(load_config(str(config_file)), base=SearchSettings(slice_ms=10.0))
    assert s.max_tries == 12
    assert s.retry_gap_minutes == 4.0
    assert s.slice_ms == 10.0
    assert s.data_dir == "/srv/skyevents/catalog"
    assert not hasattr(s, "not_a_setting")


def test_configure_logging_accepts_level_names(clean_env):
    clean_env.setenv("LOG_LEVEL", "warning")
    configure_logging()
    configure_logging("debug")


# ─────────────────────────────────────────────────────────────────────────────
# Validators
# ─────────────────────────────────────────────────────────────────────────────

def test_latlon():
    assert parse_latlon("42.75", -71.48) == (42.75, -71.48)
    for lat, lon in [(91, 0), (0, 181), (None, 0), (float("nan"), 0), (True, 0)]:
        with pytest.raises(ValidationError):
            parse_latlon(lat, lon)


def test_elevation():
    assert parse_elevation(None) == 0.0
    assert parse_elevation("120") == 120.0
    with pytest.raises(ValidationError) as ei:
        parse_elevation(30000)
    assert ei.value.errors()[0]["loc"] == ["elevation"]


def test_zone_and_max_tries():
    assert validate_zone(None) == "UTC"
    assert validate_zone(" Asia/Tokyo ") == "Asia/Tokyo"
    with pytest.raises(ValidationError):
        validate_zone("Atlantis/Capital")
    assert validate_max_tries(None) is None
    assert validate_max_tries(0) == 0
    for bad in (-1, 2.5, "3", True):
        with pytest.raises(ValidationError):
            validate_max_tries(bad)


def test_error_shapes():
    e = ValidationError("plain message")
    assert e.errors() == [{"loc": [], "msg": "plain message", "type": "value_error"}]
    assert str(e) == "plain message"
    assert isinstance(InvalidConfigurationError("x"), ValueError)


# ─────────────────────────────────────────────────────────────────────────────
# Cache
# ─────────────────────────────────────────────────────────────────────────────

def test_lru_eviction_and_counters():
    cache = LRUCache(2)
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.get("a") == 1
    cache.set("c", 3)
    assert cache.get("b") is None
    assert len(cache) == 2
    assert (cache.hits, cache.misses) == (1, 1)
    assert cache.get_or_compute("d", lambda: 4) == 4
    cache.clear()
    assert len(cache) == 0 and cache.hits == 0


def test_version_is_a_plain_release_number():
    assert re.fullmatch(r"\d+\.\d+\.\d+", VERSION)
