"""Tests for configuration loading."""

from pathlib import Path
from unittest.mock import patch

import pytest
from cmsstage.config import AuthConfig, Config


class TestConfigLoad:
    """Tests for Config.load()."""

    def test__explicit_path__loads_config(self, tmp_path: Path) -> None:
        """Load config from explicit path."""
        config_file = tmp_path / "cmsstage.toml"
        config_file.write_text("""
[server]
host = "0.0.0.0"
port = 3000

[content]
file = "content/site.toml"
files_dir = "content/files"
layouts_dir = "theme"
reload = true

[domains]
canonical_host = "www.example.com"
scheme = "https"

[caching]
enabled = true
max_age = 60

[portlets]
timeout = 2
concurrent = false

[bindings]
modules = ["mysite.bindings"]

[auth]
groups_header = "X-Groups"
edit_mode_cookie = "mode"
""")

        config = Config.load(config_file)

        assert config.server.host == "0.0.0.0"
        assert config.server.port == 3000
        assert config.content.file == tmp_path / "content/site.toml"
        assert config.content.files_dir == tmp_path / "content/files"
        assert config.content.layouts_dir == tmp_path / "theme"
        assert config.content.reload is True
        assert config.domains.canonical_host == "www.example.com"
        assert config.domains.scheme == "https"
        assert config.caching.enabled is True
        assert config.caching.max_age == 60
        assert config.portlets.timeout == 2.0
        assert config.portlets.concurrent is False
        assert config.bindings.modules == ["mysite.bindings"]
        assert config.auth.groups_header == "X-Groups"
        assert config.auth.editor_header == "X-CMS-Editor"
        assert config.auth.edit_mode_cookie == "mode"
        assert config.config_path == config_file

    def test__minimal_config__uses_defaults(self, tmp_path: Path) -> None:
        """Missing sections fall back to defaults relative to the config file."""
        config_file = tmp_path / "cmsstage.toml"
        config_file.write_text("")

        config = Config.load(config_file)

        assert config.server.port == 8080
        assert config.content.file == tmp_path / "site.toml"
        assert config.content.files_dir == tmp_path / "files"
        assert config.content.reload is False
        assert config.caching.enabled is False
        assert config.portlets.concurrent is True
        assert config.auth == AuthConfig()

    def test__missing_explicit_path__raises_error(self, tmp_path: Path) -> None:
        """Raise FileNotFoundError for missing explicit config file."""
        config_file = tmp_path / "nonexistent.toml"

        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            Config.load(config_file)

    def test__no_path_no_discovery__returns_defaults(self) -> None:
        """Return defaults when no config file found."""
        with patch.object(Config, "_discover_config", return_value=None):
            config = Config.load()

        assert config.server.host == "127.0.0.1"
        assert config.content.file == Path("site.toml")
        assert config.domains.canonical_host == "localhost:8080"
        assert config.bindings.modules == []
        assert config.config_path is None


class TestConfigDiscovery:
    """Tests for config file discovery."""

    def test__config_in_current_dir__found(self, tmp_path: Path) -> None:
        """Find config in current directory."""
        config_file = tmp_path / "cmsstage.toml"
        config_file.write_text("[server]\nport = 9000")

        with patch("pathlib.Path.cwd", return_value=tmp_path):
            discovered = Config._discover_config()

        assert discovered == config_file

    def test__config_in_parent_dir__found(self, tmp_path: Path) -> None:
        """Find config in parent directory."""
        config_file = tmp_path / "cmsstage.toml"
        config_file.write_text("[server]\nport = 9000")
        subdir = tmp_path / "site" / "content"
        subdir.mkdir(parents=True)

        with patch("pathlib.Path.cwd", return_value=subdir):
            discovered = Config._discover_config()

        assert discovered == config_file

    def test__no_config__returns_none(self, tmp_path: Path) -> None:
        """Return None when no config found."""
        with patch("pathlib.Path.cwd", return_value=tmp_path):
            discovered = Config._discover_config()

        assert discovered is None


class TestConfigValidation:
    """Tests for invalid configuration values."""

    @pytest.mark.parametrize(
        ("text", "message"),
        [
            ("server = 1", "server section must be a dictionary"),
            ('[server]\nport = "80"', "server.port must be an integer"),
            ("[server]\nport = true", "server.port must be an integer"),
            ("[content]\nfile = 1", "content.file must be a string"),
            ('[content]\nreload = "yes"', "content.reload must be a boolean"),
            ('[domains]\ncanonical_host = ""', "domains.canonical_host must be a non-empty string"),
            ('[domains]\nscheme = "ftp"', "domains.scheme must be 'http' or 'https'"),
            ('[caching]\nenabled = "on"', "caching.enabled must be a boolean"),
            ("[caching]\nmax_age = -1", "caching.max_age must be a non-negative integer"),
            ("[portlets]\ntimeout = 0", "portlets.timeout must be a positive number"),
            ("[portlets]\nconcurrent = 1", "portlets.concurrent must be a boolean"),
            ('[bindings]\nmodules = "a"', "bindings.modules must be a list"),
            ("[bindings]\nmodules = [1]", "bindings.modules items must be strings"),
            ("[auth]\nuser_header = 1", "auth.user_header must be a string"),
        ],
    )
    def test__invalid_value__raises_error(self, tmp_path: Path, text: str, message: str) -> None:
        """Reject values of the wrong type or range."""
        config_file = tmp_path / "cmsstage.toml"
        config_file.write_text(text)

        with pytest.raises(ValueError, match=message):
            Config.load(config_file)


class TestConfigOverrides:
    """Tests for Config.with_overrides()."""

    def test__no_overrides__returns_same_values(self) -> None:
        """Return equal config without overrides."""
        config = Config._default()

        assert config.with_overrides() == config

    def test__override_host__changes_only_host(self) -> None:
        """Override host keeps the port."""
        config = Config._default()

        result = config.with_overrides(host="0.0.0.0")

        assert result.server.host == "0.0.0.0"
        assert result.server.port == 8080
        assert config.server.host == "127.0.0.1"

    def test__override_caching__changes_only_enabled(self) -> None:
        """Override caching mode keeps max age."""
        config = Config._default()

        result = config.with_overrides(caching_enabled=True)

        assert result.caching.enabled is True
        assert result.caching.max_age == 300
        assert config.caching.enabled is False

    def test__override_content_file_and_reload(self, tmp_path: Path) -> None:
        """Override content file and reload together."""
        config = Config._default()

        result = config.with_overrides(content_file=tmp_path / "other.toml", reload=True)

        assert result.content.file == tmp_path / "other.toml"
        assert result.content.reload is True
        assert result.content.files_dir == config.content.files_dir

    def test__override_canonical_host(self) -> None:
        """Override canonical host keeps the scheme."""
        result = Config._default().with_overrides(canonical_host="example.org")

        assert result.domains.canonical_host == "example.org"
        assert result.domains.scheme == "http"
