# skyevents/utils/config.py
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

import yaml


class AttrDict(dict):
    """Dict that also supports attribute access: cfg.search and cfg['search'] both work."""
    def __getattr__(self, item):
        try:
            return self[item]
        except KeyError as e:
            raise AttributeError(item) from e
    def __setattr__(self, key, value):
        self[key] = value


def _to_attr(obj):
    if isinstance(obj, dict):
        return AttrDict({k: _to_attr(v) for k, v in obj.items()})
    if isinstance(obj, list):
        return [_to_attr(x) for x in obj]
    return obj


def _load_json_if(path: Optional[str]) -> Dict[str, Any]:
    if not path or not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f) or {}


def load_config(path: str) -> AttrDict:
    """
    Load YAML config from `path` and apply env overrides:
      - SKYEVENTS_DATA_DIR       (overrides config['data_dir'])
      - SKYEVENTS_OBSERVER_JSON  (JSON file merged into config['observer'])
    Returns an AttrDict for convenient access.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    data_dir = os.getenv("SKYEVENTS_DATA_DIR")
    if data_dir:
        data["data_dir"] = data_dir

    obs_path = os.getenv("SKYEVENTS_OBSERVER_JSON")
    if obs_path:
        observer = dict(data.get("observer") or {})
        observer.update(_load_json_if(obs_path))
        data["observer"] = observer

    return _to_attr(data)


# ───────────────────────── search settings ─────────────────────────

def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    if raw.lower() in ("none", "unbounded", "inf"):
        return None
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


@dataclass(frozen=True)
class SearchSettings:
    max_tries: Optional[int] = None          # None → unbounded
    slice_ms: float = 50.0                   # batch task wall-clock slice
    async_yield_ms: float = 100.0            # find_event_async yields after this much work
    first_try_gap_minutes: float = 0.49
    retry_gap_minutes: float = 5.0
    local_eclipse_shift_days: float = 2.0
    data_dir: Optional[str] = None


def settings_from_env() -> SearchSettings:
    return SearchSettings(
        max_tries=_env_int("SKYEVENTS_MAX_TRIES", None),
        slice_ms=_env_float("SKYEVENTS_SLICE_MS", 50.0),
        async_yield_ms=_env_float("SKYEVENTS_ASYNC_YIELD_MS", 100.0),
        first_try_gap_minutes=_env_float("SKYEVENTS_FIRST_TRY_GAP_MIN", 0.49),
        retry_gap_minutes=_env_float("SKYEVENTS_RETRY_GAP_MIN", 5.0),
        local_eclipse_shift_days=_env_float("SKYEVENTS_LOCAL_ECLIPSE_SHIFT_DAYS", 2.0),
        data_dir=os.getenv("SKYEVENTS_DATA_DIR") or None,
    )


def settings_from_config(cfg: Dict[str, Any], base: Optional[SearchSettings] = None) -> SearchSettings:
    """Overlay the `search:` section of a loaded YAML config onto `base`."""
    base = base or settings_from_env()
    section = dict(cfg.get("search") or {})
    if cfg.get("data_dir") and "data_dir" not in section:
        section["data_dir"] = cfg["data_dir"]
    known = {k: v for k, v in section.items() if k in SearchSettings.__dataclass_fields__}
    return replace(base, **known)


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or os.environ.get("LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


CFG = settings_from_env()
