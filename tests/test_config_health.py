"""Environment configuration, health report and status registries."""
import threading

import pytest

import core.health as health
from core.concepts import describe_concept, list_concepts
from core.config import AppConfig
from core.health import system_health
from core.snapshot import Snapshot
from core.sync_rules import describe_sync_map
from conftest import FakeStore
from ui.components.backend_status import cache_status, get_status_color, parse_health


def test_store_auto_selected_from_credentials(monkeypatch):
    monkeypatch.delenv("STUDYINSIGHTS_STORE", raising=False)
    monkeypatch.setenv("SUPABASE_URL", "https://demo.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    assert AppConfig.from_env().store == "supabase"

    monkeypatch.delenv("SUPABASE_ANON_KEY")
    assert AppConfig.from_env().store == "local"


def test_flags_and_bad_numbers(monkeypatch):
    monkeypatch.setenv("STUDYINSIGHTS_STORE", "local")
    monkeypatch.setenv("STUDYINSIGHTS_REALTIME", "off")
    monkeypatch.setenv("STUDYINSIGHTS_REFRESH_SECONDS", "soon")
    config = AppConfig.from_env()
    assert config.realtime is False
    assert config.refresh_seconds == 15


@pytest.mark.asyncio
async def test_health_without_store_is_degraded():
    report = await system_health(None)
    assert report["status"] == "degraded"
    assert report["store"] == "unconfigured"


@pytest.mark.asyncio
async def test_health_with_unreachable_store():
    store = FakeStore()

    async def ping():
        return False

    store.ping = ping
    report = await system_health(store)
    assert report["status"] == "degraded"
    assert report["store_connected"] is False


@pytest.mark.asyncio
async def test_cpu_sample_runs_off_the_event_loop(monkeypatch):
    threads = []

    def cpu_percent(interval):
        threads.append(threading.get_ident())
        return 12.5

    monkeypatch.setattr(health.psutil, "cpu_percent", cpu_percent)
    report = await system_health(None)

    assert report["cpu_load"] == 12.5
    assert threads and threads[0] != threading.get_ident()


def test_registries():
    assert "DerivationEngine" in list_concepts()
    assert describe_concept("nope") == {"error": "Concept not found."}
    assert "CacheController" in describe_sync_map()


def test_status_helpers():
    assert get_status_color("OK") == "green"
    assert get_status_color("weird") == "gray"
    assert parse_health({"status": "ok", "store_connected": True}, 12.5).latency_ms == 12.5
    assert parse_health({"status": None}).status == "error"

    busy = cache_status(Snapshot(loading=True), "local", 0)
    assert busy["status"] == "degraded"
    broken = cache_status(Snapshot(errors={"courses": "boom"}), "local", 3)
    assert broken["errors"] == {"courses": "boom"}
    assert cache_status(Snapshot(), "local", 3)["message"] == "In sync"
