# tests/test_data_source.py
from __future__ import annotations

import asyncio
import json

import pytest

from skyevents.core.data_source import (
    CatalogLoader,
    DataSourceError,
    JsonFileDataSource,
    OrbitalElementsDataSource,
    parse_minor_bodies,
)
from skyevents.core.timescales import GREGORIAN

CERES = {
    "body": {"name": "Ceres", "designation": "1", "H": 3.34, "G": 0.12},
    "elements": [
        {"epoch": 2459000.5, "q": 2.55, "e": 0.077, "i": 10.6, "w": 73.6, "L": 80.3, "Tp": "2018-05-01"},
        {"epoch": "2020-12-17", "q": 2.56, "e": 0.078, "i": 10.6, "ω": 73.7, "L": 80.3, "Tp": 2458240.5},
    ],
}
HALLEY = {
    "body": {"name": "1P/Halley", "H": 5.5},
    "elements": [
        {"epoch": 2446480.5, "q": 0.586, "e": 0.967, "i": 162.2, "w": 111.3, "L": 58.4,
         "Tp": "1986-02-09T11:00"},
    ],
}
GRS_TEXT = "0\n0\n2\n2019-01-01,300\n2019-01-11,301\n"


def _write_catalog(tmp_path, comets=True):
    (tmp_path / "asteroids.json").write_text(json.dumps([CERES]), encoding="utf-8")
    if comets:
        (tmp_path / "comets.json").write_text(json.dumps([HALLEY]), encoding="utf-8")
    (tmp_path / "grs_longitude.txt").write_text(GRS_TEXT, encoding="utf-8")
    return JsonFileDataSource(tmp_path)


class CountingSource(OrbitalElementsDataSource):
    def __init__(self, fail=False, error=None):
        self.fail = fail
        self.error = error or OSError("catalogue host unreachable")
        self.calls = 0

    async def get_asteroid_data(self):
        self.calls += 1
        if self.fail:
            raise self.error
        return [CERES]

    async def get_comet_data(self):
        return []

    async def get_grs_data(self):
        self.calls += 1
        if self.fail:
            raise self.error
        return GRS_TEXT


def test_parse_minor_bodies_accepts_dates_and_jd():
    [ceres] = parse_minor_bodies([CERES], is_asteroid=True)
    assert ceres.name == "Ceres" and ceres.designation == "1"
    assert ceres.H == 3.34 and ceres.G == 0.12
    first, second = ceres.elements
    assert first.Tp == GREGORIAN.julian_day(2018, 5, 1)
    assert second.epoch == GREGORIAN.julian_day(2020, 12, 17)
    assert second.w == 73.7


def test_comets_carry_no_magnitudes():
    [halley] = parse_minor_bodies([HALLEY], is_asteroid=False)
    assert halley.H is None and halley.designation == "1P/Halley"
    assert abs(halley.elements[0].Tp - (GREGORIAN.julian_day(1986, 2, 9) + 11.0 / 24.0)) < 1e-9


@pytest.mark.parametrize("record", [
    {"body": {}, "elements": []},
    {"body": {"name": "Bad"}, "elements": [{"epoch": "someday", "q": 1, "e": 0.1, "i": 0, "w": 0, "L": 0,
                                             "Tp": 2459000.5}]},
    {"body": {"name": "Bad"}, "elements": [{"epoch": 2459000.5, "q": 1, "e": 0.1}]},
])
def test_malformed_records(record):
    with pytest.raises((ValueError, KeyError)):
        parse_minor_bodies([record], is_asteroid=True)


def test_json_source_loads_store(tmp_path):
    loader = CatalogLoader(_write_catalog(tmp_path))
    store = asyncio.run(loader.elements())
    assert store.asteroids() == ["Ceres"]
    assert store.comets() == ["1P/Halley"]


def test_json_source_loads_grs_table(tmp_path):
    loader = CatalogLoader(_write_catalog(tmp_path))
    jupiter = asyncio.run(loader.jupiter())
    assert jupiter.table is not None
    assert len(jupiter.table.times) == 2


def test_loader_imports_once():
    source = CountingSource()
    loader = CatalogLoader(source)

    async def twice():
        a = await loader.elements()
        b = await loader.elements()
        return a, b

    a, b = asyncio.run(twice())
    assert a is b
    assert source.calls == 1


def test_loader_caches_failure(tmp_path):
    loader = CatalogLoader(_write_catalog(tmp_path, comets=False))

    async def attempt():
        try:
            await loader.elements()
        except DataSourceError as e:
            return e
        return None

    first = asyncio.run(attempt())
    (tmp_path / "comets.json").write_text(json.dumps([HALLEY]), encoding="utf-8")
    second = asyncio.run(attempt())
    assert first is not None
    assert second is first
    assert isinstance(first.cause, OSError)


def test_grs_failure_is_cached_separately():
    source = CountingSource(fail=True)
    loader = CatalogLoader(source)
    with pytest.raises(DataSourceError) as first:
        asyncio.run(loader.jupiter())
    with pytest.raises(DataSourceError) as second:
        asyncio.run(loader.jupiter())
    assert first.value is second.value
    assert source.calls == 1


@pytest.mark.parametrize("load", ["elements", "jupiter"])
def test_unexpected_source_errors_are_wrapped_and_cached(load):
    source = CountingSource(fail=True, error=RuntimeError("feed returned garbage"))
    loader = CatalogLoader(source)
    with pytest.raises(DataSourceError) as first:
        asyncio.run(getattr(loader, load)())
    with pytest.raises(DataSourceError) as second:
        asyncio.run(getattr(loader, load)())
    assert first.value is second.value
    assert isinstance(first.value.cause, RuntimeError)
    assert source.calls == 1


def test_non_list_json_rejected(tmp_path):
    _write_catalog(tmp_path)
    (tmp_path / "asteroids.json").write_text(json.dumps({"Ceres": CERES}), encoding="utf-8")
    with pytest.raises(DataSourceError):
        asyncio.run(CatalogLoader(JsonFileDataSource(tmp_path)).elements())
