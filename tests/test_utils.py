"""Config, failure tracking and logger helpers."""
import json

import pytest

from nodebus.utils.config import Config
from nodebus.utils.failures import FailureManager, NodebusError, TypeConflict
from nodebus.utils.logger import parse_size


def test_config_merges_files_in_order(tmp_path):
    (tmp_path / "a.json").write_text(json.dumps({"bus": {"default_queue_depth": 5, "x": 1}}))
    (tmp_path / "b.json").write_text(json.dumps({"bus": {"default_queue_depth": 7}}))
    config = Config(configs_dir=str(tmp_path), load_env=False)

    assert config.get("bus.default_queue_depth") == 7
    assert config.get("bus.x") == 1
    assert config.get("bus.missing", "fallback") == "fallback"


def test_config_typed_getters(tmp_path):
    config = Config(configs_dir=str(tmp_path), load_env=False)
    config.merge({"a": {"n": "12", "f": "0.5", "bad": "x", "flag": "yes", "off": "0"}})

    assert config.get_int("a.n") == 12
    assert config.get_int("a.bad", 3) == 3
    assert config.get_float("a.f") == 0.5
    assert config.get_bool("a.flag") is True
    assert config.get_bool("a.off") is False
    assert config.get_bool("a.missing", True) is True


def test_config_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("NODEBUS_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("NODEBUS_SERIALIZE", "true")
    config = Config(configs_dir=str(tmp_path))

    assert config.get("logging.level") == "DEBUG"
    assert config.get_bool("bus.serialize_in_transit") is True


def test_packaged_defaults_load():
    config = Config(load_env=False)
    assert config.get_int("bus.default_queue_depth") == 10
    assert config.get("nodes.talker.topic") == "topic"


def test_config_save_and_reload(tmp_path):
    config = Config(configs_dir=str(tmp_path), load_env=False)
    config.merge({"nodes": {"talker": {"period": 0.25}}})
    config.save_to_file(str(tmp_path / "saved.json"))

    reloaded = Config(configs_dir=str(tmp_path), load_env=False)
    assert reloaded.get_float("nodes.talker.period") == 0.25


def test_failure_manager_threshold(caplog):
    failures = FailureManager({"threshold": 3, "window_seconds": 60}, name="test")
    for _ in range(2):
        failures.record_failure(RuntimeError("boom"), context="timer")
    assert not failures.is_threshold_exceeded("RuntimeError")

    failures.record_failure(RuntimeError("boom"))
    failures.record_failure(TypeConflict("bound", critical=True))
    assert [r.levelname for r in caplog.records if "TypeConflict" in r.getMessage()] == ["CRITICAL"]

    assert failures.is_threshold_exceeded("RuntimeError")
    assert failures.count("RuntimeError") == 3
    assert failures.count() == 4
    assert isinstance(failures.get_recent_history(1)[0], TypeConflict)

    failures.clear()
    assert failures.count() == 0


def test_errors_carry_message_and_flags():
    error = TypeConflict("Topic /c carries ColorNumber", critical=True)
    assert isinstance(error, NodebusError)
    assert error.message == "Topic /c carries ColorNumber"
    assert error.critical
    assert error.timestamp > 0


@pytest.mark.parametrize("value, expected", [
    ("5MB", 5 * 1024 * 1024),
    ("512kb", 512 * 1024),
    ("2048", 2048),
    ("lots", 5 * 1024 * 1024),
])
def test_parse_size(value, expected):
    assert parse_size(value) == expected
