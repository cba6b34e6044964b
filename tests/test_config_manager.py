"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from modelshelf.config import (
    ConfigError,
    ConfigManager,
    ModelshelfConfig,
    flatten_for_env,
    resolve_library_paths,
    resolve_with_precedence,
)


def _fresh_manager(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigManager:
    monkeypatch.setenv("HOME", str(tmp_path))
    return ConfigManager()


def test_ensure_exists_creates_default_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    path = manager.ensure_exists()

    assert path == tmp_path / ".modelshelf" / "config.yaml"
    text = path.read_text(encoding="utf-8")
    assert "modelshelf configuration file" in text
    assert "Last updated:" in text

    config = manager.load(include_env=False)
    assert isinstance(config, ModelshelfConfig)
    assert config.scan.default_strategy == "smart"


def test_resolve_with_precedence_respects_order(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.save({"scan": {"default_strategy": "strict"}, "logging": {"level": "INFO", "backup_count": 2}})

    env = {
        "MODELSHELF__LOGGING__LEVEL": "DEBUG",
        "MODELSHELF__SCAN__AUTO_TAG": "false",
        "MODELSHELF__BACKUP__DEFAULT_STRATEGY": "path-match",
        "UNRELATED": "1",
    }
    cli = {"backup.default_strategy": "force"}

    config = manager.load(cli_overrides=cli, env_overrides=env)

    assert config.scan.default_strategy == "strict"
    assert config.logging.backup_count == 2
    assert config.logging.level == "DEBUG"
    assert config.scan.auto_tag is False
    # CLI overrides take precedence over environment
    assert config.backup.default_strategy == "force"


def test_invalid_yaml_raises_config_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.config_path.write_text("- not-a-mapping", encoding="utf-8")

    with pytest.raises(ConfigError):
        manager.load()


def test_set_value_validates_before_writing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.set_value("scan.default_strategy", "top-level")
    before = manager.read_text()

    with pytest.raises(ConfigError):
        manager.set_value("scan.default_strategy", "sideways")

    assert manager.read_text() == before
    assert manager.load(include_env=False).scan.default_strategy == "top-level"


def test_flatten_for_env_round_trips_defaults() -> None:
    flat = flatten_for_env(ModelshelfConfig())

    assert flat["MODELSHELF__SCAN__DEFAULT_STRATEGY"] == "smart"
    assert flat["MODELSHELF__LOGGING__MAX_SIZE_MB"] == "10"
    assert flat["MODELSHELF__LOGGING__FILE"] == "null"
    assert list(flat) == sorted(flat)


def test_resolve_with_precedence_invalid_value_raises() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=ModelshelfConfig(),
            file_overrides={"logging": {"max_size_mb": "not-an-int"}},
        )


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(defaults=ModelshelfConfig(), cli_overrides={"scan.recurse": True})


def test_resolve_library_paths_anchors_relative_paths(tmp_path: Path) -> None:
    config = resolve_with_precedence(
        defaults=ModelshelfConfig(),
        file_overrides={"library": {"collections_file": str(tmp_path / "abs.json")}},
    )

    resolved = resolve_library_paths(config, tmp_path / "base")

    assert resolved.library.models_dir == tmp_path / "base" / "models"
    assert resolved.library.collections_file == tmp_path / "abs.json"
