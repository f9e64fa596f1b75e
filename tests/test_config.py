"""Tests for env-driven configuration."""

from brokermetrics.config import SAMPLE_INTERVAL_MS, MetricsConfig


def test_defaults(monkeypatch):
    for name in ("STATS_REPORT_INTERVAL_MS", "STATS_REPORT_ENABLED", "STATS_SAMPLE_ITEMS"):
        monkeypatch.delenv(name, raising=False)
    config = MetricsConfig.from_env()
    assert config.report_interval_ms == 60000
    assert config.report_enabled is True
    assert config.sample_item_names == []
    assert config.sample_interval_ms == SAMPLE_INTERVAL_MS == 1000


def test_values_from_env(monkeypatch):
    monkeypatch.setenv("STATS_REPORT_INTERVAL_MS", "5000")
    monkeypatch.setenv("STATS_INITIAL_DELAY_MS", "250")
    monkeypatch.setenv("STATS_REPORT_ENABLED", "off")
    monkeypatch.setenv("STATS_SAMPLE_ITEMS", "msgs, bytes,,")
    monkeypatch.setenv("COUNTER_RETENTION_MS", "60000")
    config = MetricsConfig.from_env()
    assert config.report_interval_ms == 5000
    assert config.initial_delay_ms == 250
    assert config.report_enabled is False
    assert config.sample_item_names == ["msgs", "bytes"]
    assert config.counter_retention_ms == 60000


def test_invalid_values_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("STATS_REPORT_INTERVAL_MS", "soon")
    monkeypatch.setenv("STATS_SCHEDULER_WORKERS", "0")
    monkeypatch.setenv("STATS_REPORT_ENABLED", "maybe")
    config = MetricsConfig.from_env()
    assert config.report_interval_ms == 60000
    assert config.scheduler_workers == 4
    assert config.report_enabled is True


def test_default_counter_memory_is_bounded():
    config = MetricsConfig()
    buckets = config.counter_retention_ms // config.counter_bucket_ms
    assert config.counter_bucket_ms >= 10
    assert buckets * config.counter_max_samples_per_bucket <= 1_000_000
