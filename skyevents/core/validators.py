# skyevents/core/validators.py
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo

# ───────────────────────── errors ─────────────────────────

class ValidationError(ValueError):
    """Structured validator error (has .errors() like the pydantic shape)."""
    def __init__(self, details: Union[str, Dict[str, Any], List[Dict[str, Any]]]):
        if isinstance(details, str):
            self._details = [{"loc": [], "msg": details, "type": "value_error"}]
            super().__init__(details)
        elif isinstance(details, dict):
            self._details = [details]
            super().__init__(details.get("msg", "validation_error"))
        else:
            self._details = list(details)
            super().__init__(self._details[0]["msg"] if self._details else "validation_error")

    def errors(self) -> List[Dict[str, Any]]:
        return list(self._details)


class InvalidConfigurationError(ValidationError):
    """A request the search engine refuses up front (e.g. unbounded sync local-eclipse search)."""


# ───────────────────────── helpers ─────────────────────────

def _err(loc: List[str] | str, msg: str, typ: str = "value_error") -> Dict[str, Any]:
    return {"loc": [loc] if isinstance(loc, str) else loc, "msg": msg, "type": typ}


def _as_float(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        x = float(v)
    except (TypeError, ValueError):
        return None
    return x if math.isfinite(x) else None


# ───────────────────────── atomic parsers ─────────────────────────

def parse_latlon(lat: Any, lon: Any, lat_key="latitude", lon_key="longitude") -> Tuple[float, float]:
    lat_f = _as_float(lat); lon_f = _as_float(lon)
    if lat_f is None or lon_f is None:
        raise ValidationError(_err([lat_key, lon_key], "latitude/longitude must be finite numbers", "type_error.float"))
    if not (-90.0 <= lat_f <= 90.0):
        raise ValidationError(_err(lat_key, "latitude must be between -90 and 90"))
    if not (-180.0 <= lon_f <= 180.0):
        raise ValidationError(_err(lon_key, "longitude must be between -180 and 180"))
    return lat_f, lon_f


def parse_elevation(elev: Any, key: str = "elevation") -> float:
    if elev is None:
        return 0.0
    e = _as_float(elev)
    if e is None:
        raise ValidationError(_err(key, "elevation must be a finite number (metres)", "type_error.float"))
    if not (-500.0 <= e <= 20000.0):
        raise ValidationError(_err(key, "elevation must be between -500 and 20000 metres"))
    return e


def validate_zone(tz: Optional[str], loc: Optional[List[str]] = None) -> str:
    """Return a loadable IANA zone name, defaulting to UTC."""
    name = (tz or "UTC").strip() or "UTC"
    try:
        ZoneInfo(name)
    except (ValueError, OSError, LookupError):
        raise ValidationError([{
            "loc": loc or ["zone"],
            "msg": "must be a valid IANA zone like 'America/New_York'",
            "type": "value_error",
        }])
    return name


def validate_max_tries(max_tries: Any) -> Optional[int]:
    """None means unbounded; otherwise a non-negative integer retry budget."""
    if max_tries is None:
        return None
    if isinstance(max_tries, bool) or not isinstance(max_tries, int):
        raise ValidationError(_err("max_tries", "max_tries must be an integer or None", "type_error.integer"))
    if max_tries < 0:
        raise ValidationError(_err("max_tries", "max_tries must be >= 0"))
    return max_tries


__all__ = [
    "ValidationError",
    "InvalidConfigurationError",
    "parse_latlon",
    "parse_elevation",
    "validate_zone",
    "validate_max_tries",
]
