"""Tests for configuration loading and validation."""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from pyloc.config import ConfigManager, PylocConfig, validate_locale_tag
from pyloc.exceptions import ConfigurationError


class TestPylocConfig:
    """Test cases for the configuration schema."""

    def test_defaults(self) -> None:
        """Test the default configuration."""
        config = PylocConfig()
        assert config.default_locale == "en-GB"
        assert config.funcs == []
        assert config.translations_dir == Path("trans")
        assert config.locale_resolver == "pyloc.get_lang()"
        assert config.workers == 1
        assert "__pycache__" in config.exclude_dirs

    @pytest.mark.parametrize("tag", ["en-GB", "fr", "pt_BR", "zh-Hant"])
    def test_valid_locales(self, tag: str) -> None:
        assert validate_locale_tag(tag) == tag

    @pytest.mark.parametrize("tag", ["xx-invalid", "", "not a locale"])
    def test_invalid_locales(self, tag: str) -> None:
        with pytest.raises(ValueError):
            _ = validate_locale_tag(tag)

    def test_invalid_default_locale_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _ = PylocConfig(default_locale="qq-zz")

    def test_identifiers_are_validated(self) -> None:
        """Test that emitted names must be Python identifiers."""
        with pytest.raises(ValidationError):
            _ = PylocConfig(locale_name="not valid")
        with pytest.raises(ValidationError):
            _ = PylocConfig(runtime_module="my-runtime")

    def test_resolver_must_be_an_expression(self) -> None:
        with pytest.raises(ValidationError):
            _ = PylocConfig(locale_resolver="get_lang(")

    def test_function_names_are_cleaned(self) -> None:
        config = PylocConfig(funcs=[" reply ", "", "send"])
        assert config.funcs == ["reply", "send"]

    def test_unknown_keys_are_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _ = PylocConfig(unknown_option=True)  # pyright: ignore[reportCallIssue]

    def test_workers_bounds(self) -> None:
        with pytest.raises(ValidationError):
            _ = PylocConfig(workers=0)


class TestConfigManager:
    """Test cases for ConfigManager functionality."""

    @pytest.fixture
    def temp_config_file(self) -> Path:
        """Create a temporary config file for testing."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yml", delete=False) as f:
            config_data = {
                "default_locale": "en-US",
                "funcs": "reply, send",
                "fmt_funcs": ["replyf"],
                "translations_dir": "locales",
                "workers": 4,
            }
            yaml.dump(config_data, f, default_flow_style=False)
            return Path(f.name)

    def test_load_config(self, temp_config_file: Path) -> None:
        """Test loading a valid configuration file."""
        try:
            config = ConfigManager.load_config(temp_config_file)
            assert config.default_locale == "en-US"
            assert config.funcs == ["reply", "send"]
            assert config.fmt_funcs == ["replyf"]
            assert config.translations_dir == Path("locales")
            assert config.workers == 4
        finally:
            temp_config_file.unlink()

    def test_load_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            _ = ConfigManager.load_config(tmp_path / "missing.yml")

    def test_load_empty_file(self, tmp_path: Path) -> None:
        """Test that an empty file yields the defaults."""
        path = tmp_path / "pyloc.yml"
        _ = path.write_text("", encoding="utf-8")
        assert ConfigManager.load_config(path) == PylocConfig()

    @pytest.mark.parametrize(
        "content",
        ["funcs: [unclosed", "- a list\n- not a mapping\n", "workers: many\n", "colour: blue\n"],
    )
    def test_invalid_files(self, tmp_path: Path, content: str) -> None:
        """Test that bad YAML and invalid values raise ConfigurationError."""
        path = tmp_path / "pyloc.yml"
        _ = path.write_text(content, encoding="utf-8")
        with pytest.raises(ConfigurationError):
            _ = ConfigManager.load_config(path)

    def test_resolve_config_overrides_win(self, tmp_path: Path) -> None:
        """Test that non-None overrides replace file values."""
        path = tmp_path / "pyloc.yml"
        _ = path.write_text("funcs: reply\ndefault_locale: fr\napply: true\n", encoding="utf-8")

        config = ConfigManager.resolve_config(
            path, {"funcs": ["send"], "default_locale": None, "translations_dir": tmp_path / "t"}
        )

        assert config.funcs == ["send"]
        assert config.default_locale == "fr"
        assert config.apply is True
        assert config.translations_dir == tmp_path / "t"

    def test_resolve_config_without_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that defaults are used when no configuration file exists."""
        monkeypatch.chdir(tmp_path)
        config = ConfigManager.resolve_config(None, {"workers": 2})
        assert config.workers == 2
        assert config.default_locale == "en-GB"

    def test_resolve_config_picks_up_default_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that pyloc.yml in the working directory is used implicitly."""
        monkeypatch.chdir(tmp_path)
        _ = (tmp_path / "pyloc.yml").write_text("funcs: [reply]\n", encoding="utf-8")
        assert ConfigManager.resolve_config(None, {}).funcs == ["reply"]

    def test_resolve_config_invalid_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ConfigurationError):
            _ = ConfigManager.resolve_config(None, {"default_locale": "qq-zz"})
