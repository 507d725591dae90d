import asyncio
import json
import logging
from pathlib import Path

import pytest
from pydantic import ValidationError as SettingsError

from shopdesk.application.triggers import IntervalSource, SignalSource, TriggerAggregator
from shopdesk.config import Settings
from shopdesk.logging_config import CHANNELS, JsonFormatter, setup_logging

ENV_KEYS = ("API_URL", "HTTP_TIMEOUT", "POLL_INTERVAL_MS", "DEBOUNCE_MS", "LOG_LEVEL")


@pytest.fixture
def env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(f"SHOPDESK_{key}", raising=False)
    return monkeypatch


def test_defaults_when_env_is_empty(env):
    s = Settings(_env_file=None)
    assert s.api_url == "http://localhost:8080"
    assert s.http_timeout == 10.0
    assert s.poll_interval_ms == 20_000
    assert s.debounce_ms == 120
    assert s.log_level == logging.INFO


def test_env_overrides_are_parsed(env):
    env.setenv("SHOPDESK_API_URL", "https://shop.example.com/ ")
    env.setenv("SHOPDESK_HTTP_TIMEOUT", "2.5")
    env.setenv("SHOPDESK_POLL_INTERVAL_MS", "5000")
    env.setenv("SHOPDESK_DEBOUNCE_MS", "50")
    env.setenv("SHOPDESK_LOG_LEVEL", "debug")

    s = Settings(_env_file=None)
    assert s.api_url == "https://shop.example.com"
    assert s.http_timeout == 2.5
    assert s.poll_interval_ms == 5000
    assert s.debounce_ms == 50
    assert s.log_level == logging.DEBUG


def test_env_file_is_read(env, tmp_path: Path):
    dotenv = tmp_path / ".env"
    dotenv.write_text("SHOPDESK_POLL_INTERVAL_MS=7000\nUNRELATED=1\n", encoding="utf-8")
    assert Settings(_env_file=dotenv).poll_interval_ms == 7000


@pytest.mark.parametrize(
    "key, value",
    [
        ("SHOPDESK_POLL_INTERVAL_MS", "0"),
        ("SHOPDESK_DEBOUNCE_MS", "-5"),
        ("SHOPDESK_HTTP_TIMEOUT", "soon"),
        ("SHOPDESK_LOG_LEVEL", "LOUD"),
    ],
)
def test_invalid_env_values_are_rejected(env, key, value):
    env.setenv(key, value)
    with pytest.raises(SettingsError):
        Settings(_env_file=None)


def test_settings_are_immutable(env):
    s = Settings(_env_file=None)
    with pytest.raises(SettingsError):
        s.debounce_ms = 1


def test_json_formatter_emits_one_object_per_record():
    record = logging.LogRecord("shopdesk.sales", logging.INFO, __file__, 1, "sale_submitted qty=%s", (3,), None)
    payload = json.loads(JsonFormatter().format(record))
    assert payload["logger"] == "shopdesk.sales"
    assert payload["message"] == "sale_submitted qty=3"
    assert payload["event"] == "sale_submitted"
    assert payload["fields"] == {"qty": "3"}
    assert payload["level"] == "INFO"


def test_setup_logging_writes_channel_files(tmp_path: Path):
    root = logging.getLogger()
    saved = root.handlers[:]
    root.handlers.clear()
    try:
        setup_logging(tmp_path, console_level=None)
        logging.getLogger("shopdesk.dashboard").info("dashboard_refreshed token=%s count=%s", 1, 4)
        for h in logging.getLogger("shopdesk.dashboard").handlers + root.handlers:
            h.flush()
        line = (tmp_path / "dashboard.log").read_text(encoding="utf-8").strip().splitlines()[-1]
        assert json.loads(line)["fields"] == {"token": "1", "count": "4"}
        assert (tmp_path / "app.log").exists()
    finally:
        for channel in CHANNELS:
            for h in logging.getLogger(channel).handlers[:]:
                logging.getLogger(channel).removeHandler(h)
                h.close()
        for h in root.handlers[:]:
            root.removeHandler(h)
            h.close()
        root.handlers.extend(saved)


@pytest.mark.asyncio
async def test_closed_aggregator_ignores_sources():
    ticks = []
    agg = TriggerAggregator(ticks.append, debounce_s=0.01)
    focus = agg.register(SignalSource("focus"))

    focus.fire()
    agg.open()
    focus.fire()
    await asyncio.sleep(0.05)
    agg.close()
    focus.fire()
    agg.fire_now("start")
    await asyncio.sleep(0.05)

    assert ticks == [frozenset({"focus"})]


@pytest.mark.asyncio
async def test_fire_now_folds_waiting_triggers():
    ticks = []
    agg = TriggerAggregator(ticks.append, debounce_s=1)
    online = agg.register(SignalSource("online"))
    agg.open()
    online.fire()
    agg.fire_now("start")
    await asyncio.sleep(0.01)
    agg.close()

    assert ticks == [frozenset({"online", "start"})]


def test_interval_source_requires_positive_period():
    with pytest.raises(ValueError):
        IntervalSource(0)
