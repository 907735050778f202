import json

from guildbridge.core.config import BridgeSettings


def test_ensure_config_creates_file(monkeypatch, tmp_path):
    # Import lazily to patch module globals
    import guildbridge.core.config as config

    data_dir = tmp_path / ".guildbridge_local"
    cfg_path = data_dir / "config.json"
    monkeypatch.setattr(config, "DATA_DIR", data_dir, raising=False)
    monkeypatch.setattr(config, "CONFIG_PATH", cfg_path, raising=False)

    cfg = config.ensure_config()
    assert cfg_path.exists(), "config.json should be created"

    with cfg_path.open("r", encoding="utf-8") as f:
        loaded = json.load(f)
    assert loaded == cfg
    assert loaded["connection"]["retry_limit"] == 3
    assert loaded["history"]["limit"] == 50

    # Change a value and persist via private helper
    loaded["connection"]["retry_delay"] = 2.5
    config._persist_cfg(loaded)  # noqa: SLF001 - test private helper intentionally
    assert config.ensure_config()["connection"]["retry_delay"] == 2.5


def test_corrupted_config_is_replaced(monkeypatch, tmp_path):
    import guildbridge.core.config as config

    cfg_path = tmp_path / "config.json"
    cfg_path.write_text("{not json", encoding="utf-8")
    monkeypatch.setattr(config, "DATA_DIR", tmp_path, raising=False)
    monkeypatch.setattr(config, "CONFIG_PATH", cfg_path, raising=False)

    cfg = config.ensure_config()
    assert cfg["commands"]["legacy_untyped_send"] is False
    assert json.loads(cfg_path.read_text(encoding="utf-8")) == cfg


def test_defaults_are_not_shared(monkeypatch, tmp_path):
    import guildbridge.core.config as config

    monkeypatch.setattr(config, "DATA_DIR", tmp_path, raising=False)
    monkeypatch.setattr(config, "CONFIG_PATH", tmp_path / "config.json", raising=False)
    cfg = config.ensure_config()
    cfg["history"]["limit"] = 1
    assert config.DEFAULT_CFG["history"]["limit"] == 50


def test_settings_from_config():
    s = BridgeSettings.from_config(
        {
            "connection": {"retry_limit": 5, "retry_delay": 1, "retry_backoff": "Exponential"},
            "history": {"limit": 20},
            "commands": {"legacy_untyped_send": True},
            "logging": {"enabled": False, "dir": "/tmp/x"},
        }
    )
    assert s.retry_limit == 5
    assert s.retry_backoff == "exponential"
    assert s.history_limit == 20
    assert s.legacy_untyped_send is True
    assert s.log_enabled is False
    assert [s.retry_delay_for(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]


def test_settings_fall_back_to_defaults():
    s = BridgeSettings.from_config({"connection": {"retry_backoff": "random"}})
    assert s == BridgeSettings()
    assert BridgeSettings.from_config(None).retry_delay_for(3) == 5.0
