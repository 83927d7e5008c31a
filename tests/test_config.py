"""Tests for mxrequest.config -- XDG paths, atomic writes, profiles, precedence."""

from __future__ import annotations

import json
import stat
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from mxrequest.config import (
    _atomic_write,
    delete_profile,
    get_config_dir,
    get_data_dir,
    get_profiles_dir,
    list_profiles,
    load_global_config,
    load_profile,
    load_project_config,
    profile_exists,
    resolve_config,
    resolve_credential,
    resolve_output_format,
    save_global_config,
    save_profile,
)
from mxrequest.exceptions import ConfigError
from mxrequest.models import GlobalConfig, OutputConfig, Profile, RequestConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def _make_profile(name: str = "test", homeserver: str = "https://example.org") -> Profile:
    return Profile(name=name, homeserver=homeserver)


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPaths:
    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("mxrequest.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "mxrequest"
        assert result.is_dir()

    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = tmp_path / "custom_config"
        monkeypatch.setattr("mxrequest.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(custom))

        assert get_config_dir() == custom / "mxrequest"

    def test_data_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("mxrequest.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_data_dir() == tmp_path / ".local" / "share" / "mxrequest"

    def test_fallback_dirs(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("mxrequest.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_config_dir() == tmp_path / ".mxrequest"
        assert get_data_dir() == tmp_path / ".mxrequest" / "data"

    def test_profiles_dir_is_inside_config_dir(self, isolated_config: Path) -> None:
        result = get_profiles_dir()
        assert result == isolated_config / "config" / "mxrequest" / "profiles"
        assert result.is_dir()


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_file_with_content(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "test.txt"
        _atomic_write(target, "hello world")
        assert target.read_text(encoding="utf-8") == "hello world"

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        target.write_text("old content", encoding="utf-8")
        _atomic_write(target, "new content")
        assert target.read_text(encoding="utf-8") == "new content"

    def test_file_is_private(self, tmp_path: Path) -> None:
        target = tmp_path / "profile.json"
        _atomic_write(target, "{}")
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_no_temp_files_left_on_error(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        with patch("mxrequest.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                _atomic_write(target, "will fail")
        assert list(tmp_path.iterdir()) == []


# ---------------------------------------------------------------------------
# Global config
# ---------------------------------------------------------------------------


class TestGlobalConfig:
    def test_load_returns_defaults_when_missing(self, isolated_config: Path) -> None:
        cfg = load_global_config()
        assert cfg == GlobalConfig()
        assert cfg.output.format == "auto"

    def test_save_and_load_roundtrip(self, isolated_config: Path) -> None:
        original = GlobalConfig(
            default_profile="home",
            auto_select_single_profile=False,
            output=OutputConfig(format="json"),
        )
        save_global_config(original)
        assert load_global_config() == original

    def test_load_invalid_json_raises_config_error(self, isolated_config: Path) -> None:
        path = isolated_config / "config" / "mxrequest" / "config.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{invalid json!!!", encoding="utf-8")

        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()

    def test_load_invalid_schema_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "config" / "mxrequest" / "config.json", {"output": "not-a-dict"})
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class TestProfiles:
    def test_list_empty(self, isolated_config: Path) -> None:
        assert list_profiles() == []

    def test_save_and_list_sorted(self, isolated_config: Path) -> None:
        save_profile(_make_profile("beta"))
        save_profile(_make_profile("alpha"))
        assert list_profiles() == ["alpha", "beta"]

    def test_save_and_load_roundtrip(self, isolated_config: Path) -> None:
        original = Profile(
            name="work",
            homeserver="https://matrix.example.com",
            user_id="@bot:example.com",
            access_token_source="file:~/.matrix-token",
            request=RequestConfig(timeout=10, verify_ssl=False, max_retries=1),
        )
        save_profile(original)
        assert load_profile("work") == original

    def test_load_nonexistent_raises_config_error(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_profile("nonexistent")

    def test_load_invalid_profile_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(get_profiles_dir() / "bad.json", {"name": "bad"})
        with pytest.raises(ConfigError, match="Invalid profile 'bad'"):
            load_profile("bad")

    def test_delete_profile(self, isolated_config: Path) -> None:
        save_profile(_make_profile("gone"))
        assert profile_exists("gone")
        delete_profile("gone")
        assert not profile_exists("gone")

    def test_delete_nonexistent_raises_config_error(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            delete_profile("ghost")


# ---------------------------------------------------------------------------
# Project-local config
# ---------------------------------------------------------------------------


class TestProjectConfig:
    def test_load_returns_none_when_missing(self, isolated_config: Path) -> None:
        assert load_project_config() is None

    def test_load_valid_project_config(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "mxrequest.json", {"default_profile": "bot"})
        assert load_project_config() == {"default_profile": "bot"}

    def test_non_object_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "mxrequest.json", ["bot"])
        with pytest.raises(ConfigError, match="Invalid project config"):
            load_project_config()


# ---------------------------------------------------------------------------
# Precedence resolution
# ---------------------------------------------------------------------------


class TestResolveConfig:
    """CLI > env > project > global > defaults."""

    def test_no_profiles(self, isolated_config: Path) -> None:
        cfg, profile = resolve_config()
        assert cfg == GlobalConfig()
        assert profile is None

    def test_single_profile_auto_selected(self, isolated_config: Path) -> None:
        save_profile(_make_profile("only"))
        _, profile = resolve_config()
        assert profile is not None and profile.name == "only"

    def test_auto_select_disabled(self, isolated_config: Path) -> None:
        save_profile(_make_profile("only"))
        save_global_config(GlobalConfig(auto_select_single_profile=False))
        _, profile = resolve_config()
        assert profile is None

    def test_precedence_chain(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("global", "project", "env", "cli"):
            save_profile(_make_profile(name))
        save_global_config(GlobalConfig(default_profile="global"))
        assert resolve_config()[1].name == "global"

        _write_json(isolated_config / "mxrequest.json", {"default_profile": "project"})
        assert resolve_config()[1].name == "project"

        monkeypatch.setenv("MXREQUEST_PROFILE", "env")
        assert resolve_config()[1].name == "env"

        assert resolve_config(cli_profile="cli")[1].name == "cli"

    def test_homeserver_overrides(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        save_profile(_make_profile("home", "https://stored.example"))
        monkeypatch.setenv("MXREQUEST_HOMESERVER", "https://env.example")
        assert resolve_config()[1].homeserver == "https://env.example"
        _, profile = resolve_config(cli_homeserver="https://cli.example")
        assert profile.homeserver == "https://cli.example"
        assert load_profile("home").homeserver == "https://stored.example"

    def test_output_format_from_global_config(self, isolated_config: Path) -> None:
        assert resolve_output_format() == "auto"
        save_global_config(GlobalConfig(output=OutputConfig(format="json")))
        assert resolve_output_format() == "json"
        assert resolve_output_format("plain") == "plain"

    def test_unknown_output_format_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            OutputConfig(format="xml")

    def test_missing_named_profile_raises(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError):
            resolve_config(cli_profile="missing")


# ---------------------------------------------------------------------------
# Credential resolution
# ---------------------------------------------------------------------------


class TestResolveCredential:
    def test_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TOKEN_VAR", "syt_env")
        assert resolve_credential("env:TOKEN_VAR") == "syt_env"

    def test_env_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TOKEN_VAR", raising=False)
        with pytest.raises(ConfigError, match="TOKEN_VAR"):
            resolve_credential("env:TOKEN_VAR")

    def test_file_is_stripped(self, tmp_path: Path) -> None:
        token_file = tmp_path / "token"
        token_file.write_text("syt_file\n", encoding="utf-8")
        assert resolve_credential(f"file:{token_file}") == "syt_file"

    def test_file_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            resolve_credential(f"file:{tmp_path / 'nope'}")

    def test_literal_token(self) -> None:
        assert resolve_credential("token:syt_literal") == "syt_literal"

    def test_prompt_requires_tty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin.isatty", lambda: False)
        with pytest.raises(ConfigError, match="not a TTY"):
            resolve_credential("prompt")

    def test_prompt_reads_password(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin.isatty", lambda: True)
        monkeypatch.setattr("mxrequest.config.getpass.getpass", lambda prompt: "syt_typed")
        assert resolve_credential("prompt") == "syt_typed"

    def test_unknown_source(self) -> None:
        with pytest.raises(ConfigError, match="Unknown credential source"):
            resolve_credential("keyring:foo")
