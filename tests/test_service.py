"""Tests for the IconService operations and status-query hook."""

import asyncio
import io
import random
from datetime import datetime

import httpx
import pytest
from PIL import Image

from iconic.errors import NameConflict, NotFound, SchemeRejected, UnsupportedContentType
from iconic.fetch import RemoteFetcher
from iconic.models import DateIcon, Setting
from iconic.selection import SelectionMode
from iconic.service import IconService
from iconic.settings import IconSettings, load_settings

CHRISTMAS = datetime(2032, 12, 24, 18, 30)
ORDINARY = datetime(2032, 6, 1, 9, 0)


def _image_bytes(size=(64, 64), color=(50, 60, 70, 255)):
    im = Image.new("RGBA", size, color)
    buf = io.BytesIO()
    im.save(buf, format="PNG")
    return buf.getvalue()


def _write_icons(directory, *names):
    for name in names:
        (directory / name).write_bytes(_image_bytes())


def _service(setup_config, handler=None, **settings_kwargs):
    calls = []

    def record(request):
        calls.append(request)
        if handler is None:
            raise AssertionError("unexpected network request")
        return handler(request)

    fetcher = RemoteFetcher(httpx.AsyncClient(transport=httpx.MockTransport(record)))
    service = IconService(IconSettings(**settings_kwargs), setup_config, fetcher=fetcher, rng=random.Random(1))
    return service, calls


@pytest.fixture
async def service(setup_config):
    _write_icons(setup_config.icons_dir, "a.png", "b.png")
    service, _ = _service(setup_config, mode="static")
    await service.refresh()
    yield service
    await service.stop()


# --- listing and lookup ---


async def test_refresh_and_list(service, setup_config):
    assert service.list() == ["a.png", "b.png"]
    _write_icons(setup_config.icons_dir, "c.png")
    assert await service.refresh() == ["a.png", "b.png", "c.png"]


async def test_set_default_by_index_persists(service):
    entry = await service.set_default("1")
    assert entry.name == "b.png"
    assert service.on_status_query(ORDINARY).name == "b.png"
    assert (await load_settings()).default_icon == "b.png"


async def test_set_default_unknown(service):
    with pytest.raises(NotFound):
        await service.set_default("7")
    assert await Setting.all().count() == 0


# --- modes and interval ---


async def test_set_mode_validates_and_persists(service):
    with pytest.raises(ValueError):
        await service.set_mode("sideways")
    assert await service.set_mode("per-ping-random") is SelectionMode.PER_QUERY_RANDOM
    assert (await load_settings()).mode == "per-query-random"
    assert not service.scheduler.running


async def test_set_mode_cycle_starts_and_leaving_stops_rotation(service):
    await service.set_mode("cycle")
    assert service.scheduler.running
    await asyncio.sleep(0)
    assert service.on_status_query(ORDINARY).name == "a.png"  # immediate start tick
    await service.set_mode("random")
    assert not service.scheduler.running


async def test_set_interval_restarts_only_in_cycle_mode(service):
    assert await service.set_interval(10) == 10
    assert not service.scheduler.running
    await service.set_mode("cycle")
    task = service.scheduler._task
    await service.set_interval(20)
    assert service.scheduler._task is not task
    assert service.scheduler.interval == 20
    assert (await load_settings()).interval == 20


@pytest.mark.parametrize("seconds", [0, -1])
async def test_set_interval_rejects_non_positive(service, seconds):
    with pytest.raises(ValueError):
        await service.set_interval(seconds)


@pytest.mark.parametrize("mode", ["static", "cycle", "random", "per-query-random"])
async def test_query_after_set_mode_returns_catalog_icon_or_default(service, mode):
    await service.set_default("a.png")
    await service.set_mode(mode)
    for _ in range(10):
        icon = service.on_status_query(ORDINARY)
        assert icon is not None
        assert icon.name in service.list()


# --- date overrides ---


async def test_add_date_icon_overrides_every_mode(service):
    assert await service.add_date_icon("24.12", "b.png") == ("24.12", "b.png")
    for mode in ("static", "cycle", "random", "per-query-random"):
        await service.set_mode(mode)
        assert service.on_status_query(CHRISTMAS).name == "b.png"
    assert (await DateIcon.get(day_key="24.12")).filename == "b.png"


async def test_add_date_icon_unknown_icon(service):
    with pytest.raises(NotFound):
        await service.add_date_icon("24.12", "nope.png")
    with pytest.raises(ValueError):
        await service.add_date_icon("99.99", "a.png")


async def test_remove_date_icon(service):
    assert await service.remove_date_icon("24.12") is False
    await service.add_date_icon("24.12", "0")
    assert await service.remove_date_icon("24.12") is True
    assert service.on_status_query(CHRISTMAS) is None  # static mode, no default
    assert (await load_settings()).date_icons == {}


async def test_deleted_override_target_degrades(service, setup_config):
    await service.add_date_icon("24.12", "b.png")
    (setup_config.icons_dir / "b.png").unlink()
    await service.refresh()
    assert service.on_status_query(CHRISTMAS) is None


# --- rename ---


async def test_rename(service, setup_config):
    entry = await service.rename("0", "zeta")
    assert entry.name == "zeta.png"
    assert service.list() == ["b.png", "zeta.png"]
    assert not (setup_config.icons_dir / "a.png").exists()


async def test_rename_conflict(service):
    with pytest.raises(NameConflict):
        await service.rename("a.png", "b")
    assert service.list() == ["a.png", "b.png"]


async def test_rename_unknown_and_invalid(service):
    with pytest.raises(NotFound):
        await service.rename("9", "x")
    with pytest.raises(ValueError):
        await service.rename("a.png", "")
    with pytest.raises(ValueError):
        await service.rename("a.png", "../x")


async def test_rename_leaves_default_dangling(service):
    await service.set_default("a.png")
    await service.rename("a.png", "renamed")
    assert service.catalog.default is None
    assert service.on_status_query(ORDINARY) is None


# --- ingestion ---


async def test_process_input(service, setup_config):
    (setup_config.input_dir / "new.png").write_bytes(_image_bytes((20, 30)))
    assert await service.process_input() == ["new.png"]
    assert service.list() == ["a.png", "b.png", "new.png"]


async def test_download(setup_config):
    def handler(request):
        assert request.url == "https://cdn.example.com/pic"
        return httpx.Response(200, content=_image_bytes((256, 256)), headers={"Content-Type": "image/png"})

    service, calls = _service(setup_config, handler)
    entry = await service.download("https://cdn.example.com/pic", "pic")
    assert entry.name == "pic.png"
    assert service.list() == ["pic.png"]
    with Image.open(setup_config.icons_dir / "pic.png") as im:
        assert im.size == (64, 64)
    assert len(calls) == 1
    await service.stop()


async def test_download_generates_name(setup_config):
    service, _ = _service(
        setup_config, lambda r: httpx.Response(200, content=_image_bytes(), headers={"Content-Type": "image/png"})
    )
    entry = await service.download("https://cdn.example.com/pic")
    assert entry.name.startswith("downloaded_")
    await service.stop()


async def test_download_rejects_http_without_request(setup_config):
    service, calls = _service(setup_config)
    with pytest.raises(SchemeRejected):
        await service.download("http://cdn.example.com/pic.png")
    assert calls == []
    assert service.list() == []


async def test_download_failure_leaves_catalog_alone(setup_config):
    service, _ = _service(setup_config, lambda r: httpx.Response(200, content=b"<html>", headers={"Content-Type": "text/html"}))
    with pytest.raises(UnsupportedContentType):
        await service.download("https://example.com/", "page")
    assert list(setup_config.icons_dir.iterdir()) == []


# --- startup ---


async def test_load_and_start(setup_config):
    _write_icons(setup_config.icons_dir, "a.png", "b.png")
    (setup_config.input_dir / "c.png").write_bytes(_image_bytes((8, 8)))
    await Setting.put("icon-selection-mode", "cycle")

    service = await IconService.load()
    await service.start()
    try:
        await asyncio.sleep(0)
        assert service.list() == ["a.png", "b.png", "c.png"]
        assert service.scheduler.running
        assert service.on_status_query(ORDINARY).name == "a.png"
    finally:
        await service.stop()
    assert not service.scheduler.running


async def test_unknown_stored_mode_serves_default_without_rotation(setup_config):
    _write_icons(setup_config.icons_dir, "a.png", "b.png")
    service, _ = _service(setup_config, mode="bogus", default_icon="b.png")
    await service.start()
    try:
        await asyncio.sleep(0)
        assert service.mode == "bogus"
        assert not service.scheduler.running
        for _ in range(5):
            assert service.on_status_query(ORDINARY).name == "b.png"
    finally:
        await service.stop()


async def test_unknown_stored_mode_without_default_serves_nothing(setup_config):
    _write_icons(setup_config.icons_dir, "a.png")
    service, _ = _service(setup_config, mode="bogus")
    await service.start()
    try:
        assert service.on_status_query(ORDINARY) is None
    finally:
        await service.stop()


async def test_empty_catalog_static_no_default(setup_config):
    service, _ = _service(setup_config, mode="static")
    await service.refresh()
    assert service.on_status_query(ORDINARY) is None
    await service.stop()
