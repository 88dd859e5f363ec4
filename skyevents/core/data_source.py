# skyevents/core/data_source.py
# -----------------------------------------------------------------------------
# One-time import of minor-body elements and the GRS longitude table
#
# • OrbitalElementsDataSource: async interface (asteroids, comets, GRS text)
# • JsonFileDataSource: reads asteroids.json / comets.json / grs_longitude.txt
#   from a directory without blocking the event loop
# • CatalogLoader: builds OrbitalElementsStore / JupiterInfo once; success and
#   failure are both cached for the life of the loader (no automatic reload)
# -----------------------------------------------------------------------------
from __future__ import annotations

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from skyevents.core.jupiter import GrsTable, JupiterInfo
from skyevents.core.orbital_elements import MinorBody, OrbitalElementSet, OrbitalElementsStore
from skyevents.core.timescales import GREGORIAN

log = logging.getLogger(__name__)

__all__ = [
    "DataSourceError",
    "OrbitalElementsDataSource",
    "JsonFileDataSource",
    "CatalogLoader",
    "parse_minor_bodies",
]

Record = Dict[str, Any]

_ISO_DATE_RE = re.compile(r"^\s*(-?\d{1,5})-(\d{1,2})-(\d{1,2})(?:[T ](\d{1,2}):(\d{2})(?::(\d{2}(?:\.\d+)?))?)?\s*$")


class DataSourceError(RuntimeError):
    """Upstream catalogue could not be loaded; raised on every call after the first failure."""
    def __init__(self, what: str, cause: Optional[BaseException] = None):
        msg = f"failed to load {what}" + (f": {cause}" if cause else "")
        super().__init__(msg)
        self.what = what
        self.cause = cause


class OrbitalElementsDataSource(ABC):
    @abstractmethod
    async def get_asteroid_data(self) -> List[Record]:
        ...

    @abstractmethod
    async def get_comet_data(self) -> List[Record]:
        ...

    @abstractmethod
    async def get_grs_data(self) -> str:
        ...


class JsonFileDataSource(OrbitalElementsDataSource):
    def __init__(self, base_dir: Union[str, Path]):
        self.base_dir = Path(base_dir)

    def _read_json(self, name: str) -> List[Record]:
        with (self.base_dir / name).open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"{name}: expected a JSON list")
        return data

    async def get_asteroid_data(self) -> List[Record]:
        return await asyncio.to_thread(self._read_json, "asteroids.json")

    async def get_comet_data(self) -> List[Record]:
        return await asyncio.to_thread(self._read_json, "comets.json")

    async def get_grs_data(self) -> str:
        return await asyncio.to_thread((self.base_dir / "grs_longitude.txt").read_text, "utf-8")


# ───────────────────────── parsing ─────────────────────────

def _julian_day(value: Any, field: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    m = _ISO_DATE_RE.match(str(value or ""))
    if not m:
        raise ValueError(f"{field}: expected a Julian Day or YYYY-MM-DD, got {value!r}")
    y, mo, d = int(m.group(1)), int(m.group(2)), int(m.group(3))
    secs = int(m.group(4) or 0) * 3600 + int(m.group(5) or 0) * 60 + float(m.group(6) or 0.0)
    return GREGORIAN.julian_day(y, mo, d) + secs / 86400.0


def _opt_float(v: Any) -> Optional[float]:
    return None if v is None else float(v)


def parse_minor_bodies(records: List[Record], is_asteroid: bool) -> List[MinorBody]:
    bodies: List[MinorBody] = []
    for rec in records:
        desc = rec.get("body") or {}
        name = str(desc.get("name") or "").strip()
        if not name:
            raise ValueError("minor body record without a name")
        H = _opt_float(desc.get("H")) if is_asteroid else None
        G = _opt_float(desc.get("G")) if is_asteroid else None

        elements = []
        for el in rec.get("elements") or ():
            elements.append(OrbitalElementSet.create(
                epoch=_julian_day(el["epoch"], "epoch"),
                q=float(el["q"]),
                e=float(el["e"]),
                i=float(el["i"]),
                w=float(el["w"] if "w" in el else el["ω"]),
                L=float(el["L"]),
                Tp=_julian_day(el["Tp"], "Tp"),
                H=H,
                G=G,
            ))
        bodies.append(MinorBody(
            name=name,
            designation=str(desc.get("designation") or name),
            is_asteroid=is_asteroid,
            elements=tuple(elements),
            H=H,
            G=G,
        ))
    return bodies


# ───────────────────────── loader ─────────────────────────

class CatalogLoader:
    """
    Memoizing front for a data source. The first `elements()` / `jupiter()`
    call performs the import; later calls return the same object or re-raise
    the same DataSourceError.
    """

    def __init__(self, source: OrbitalElementsDataSource):
        self.source = source
        self._lock = asyncio.Lock()
        self._store: Optional[OrbitalElementsStore] = None
        self._store_error: Optional[DataSourceError] = None
        self._jupiter: Optional[JupiterInfo] = None
        self._jupiter_error: Optional[DataSourceError] = None

    async def elements(self) -> OrbitalElementsStore:
        async with self._lock:
            if self._store is not None:
                return self._store
            if self._store_error is not None:
                raise self._store_error
            try:
                asteroids, comets = await asyncio.gather(
                    self.source.get_asteroid_data(), self.source.get_comet_data()
                )
                store = OrbitalElementsStore(
                    parse_minor_bodies(asteroids, True) + parse_minor_bodies(comets, False)
                )
            except Exception as e:
                log.warning("minor-body catalogue load failed: %s", e)
                self._store_error = DataSourceError("minor-body elements", e)
                raise self._store_error from e
            log.info("loaded %d asteroids and %d comets", len(store.asteroids()), len(store.comets()))
            self._store = store
            return store

    async def jupiter(self) -> JupiterInfo:
        async with self._lock:
            if self._jupiter is not None:
                return self._jupiter
            if self._jupiter_error is not None:
                raise self._jupiter_error
            try:
                table = GrsTable.parse(await self.source.get_grs_data())
            except Exception as e:
                log.warning("GRS longitude table load failed: %s", e)
                self._jupiter_error = DataSourceError("GRS longitude table", e)
                raise self._jupiter_error from e
            log.info("loaded GRS table with %d rows", len(table.times))
            self._jupiter = JupiterInfo(table)
            return self._jupiter
