"""Configuration management for cmsstage.

Supports TOML configuration format with auto-discovery.
"""

import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path

CONFIG_FILENAME = "cmsstage.toml"


@dataclass
class ServerConfig:
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class ContentConfig:
    """Content store configuration."""

    file: Path = field(default_factory=lambda: Path("site.toml"))
    files_dir: Path = field(default_factory=lambda: Path("files"))
    layouts_dir: Path = field(default_factory=lambda: Path("layouts"))
    reload: bool = False


@dataclass
class DomainsConfig:
    """Canonical host configuration."""

    canonical_host: str = "localhost:8080"
    scheme: str = "http"


@dataclass
class CachingConfig:
    """Caching mode configuration.

    ``enabled`` distinguishes cache-protected (production-like) serving from
    cache-free (development-like) serving and is fixed for the process.
    """

    enabled: bool = False
    max_age: int = 300


@dataclass
class PortletsConfig:
    """Portlet execution configuration."""

    timeout: float = 5.0
    concurrent: bool = True


@dataclass
class BindingsConfig:
    """Modules registering portlet and route bindings."""

    modules: list[str] = field(default_factory=list)


@dataclass
class AuthConfig:
    """Trusted upstream headers carrying the requester identity."""

    groups_header: str = "X-CMS-Groups"
    editor_header: str = "X-CMS-Editor"
    user_header: str = "X-CMS-User"
    edit_mode_cookie: str = "cms_page_mode"


@dataclass
class Config:
    """Application configuration."""

    server: ServerConfig
    content: ContentConfig
    domains: DomainsConfig
    caching: CachingConfig
    portlets: PortletsConfig
    bindings: BindingsConfig
    auth: AuthConfig
    config_path: Path | None = None

    @classmethod
    def load(cls, config_path: Path | None = None) -> "Config":
        """Load configuration from file.

        If config_path is provided, loads from that file.
        Otherwise, searches for cmsstage.toml in current directory and parents.

        Args:
            config_path: Optional explicit path to config file

        Returns:
            Config instance with defaults for missing sections

        Raises:
            FileNotFoundError: If explicit config_path doesn't exist
            ValueError: If configuration is invalid
        """
        if config_path is not None:
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return cls._load_from_file(config_path)

        discovered_path = cls._discover_config()
        if discovered_path is None:
            return cls._default()

        return cls._load_from_file(discovered_path)

    @classmethod
    def _discover_config(cls) -> Path | None:
        """Search for config file in current directory and parents."""
        current = Path.cwd()
        while True:
            candidate = current / CONFIG_FILENAME
            if candidate.exists():
                return candidate
            parent = current.parent
            if parent == current:
                return None
            current = parent

    @classmethod
    def _default(cls) -> "Config":
        return cls(
            server=ServerConfig(),
            content=ContentConfig(),
            domains=DomainsConfig(),
            caching=CachingConfig(),
            portlets=PortletsConfig(),
            bindings=BindingsConfig(),
            auth=AuthConfig(),
        )

    @classmethod
    def _load_from_file(cls, path: Path) -> "Config":
        """Load configuration from a specific file.

        Raises:
            ValueError: If configuration is invalid
        """
        with path.open("rb") as f:
            data = tomllib.load(f)

        if not isinstance(data, dict):
            raise ValueError("Configuration must be a dictionary")

        config_dir = path.parent

        return cls(
            server=cls._parse_server(data.get("server")),
            content=cls._parse_content(data.get("content"), config_dir),
            domains=cls._parse_domains(data.get("domains")),
            caching=cls._parse_caching(data.get("caching")),
            portlets=cls._parse_portlets(data.get("portlets")),
            bindings=cls._parse_bindings(data.get("bindings")),
            auth=cls._parse_auth(data.get("auth")),
            config_path=path,
        )

    @classmethod
    def _parse_server(cls, data: object) -> ServerConfig:
        if data is None:
            return ServerConfig()

        if not isinstance(data, dict):
            raise ValueError("server section must be a dictionary")

        host = data.get("host", "127.0.0.1")
        if not isinstance(host, str):
            raise ValueError("server.host must be a string")

        port = data.get("port", 8080)
        if not isinstance(port, int) or isinstance(port, bool):
            raise ValueError("server.port must be an integer")

        return ServerConfig(host=host, port=port)

    @classmethod
    def _parse_content(cls, data: object, config_dir: Path) -> ContentConfig:
        """Parse content configuration section.

        Relative paths are resolved against the config file directory.
        """
        if data is None:
            return ContentConfig(
                file=config_dir / "site.toml",
                files_dir=config_dir / "files",
                layouts_dir=config_dir / "layouts",
            )

        if not isinstance(data, dict):
            raise ValueError("content section must be a dictionary")

        paths: dict[str, Path] = {}
        for key, default in (("file", "site.toml"), ("files_dir", "files"), ("layouts_dir", "layouts")):
            value = data.get(key, default)
            if not isinstance(value, str):
                raise ValueError(f"content.{key} must be a string")
            paths[key] = config_dir / value

        reload = data.get("reload", False)
        if not isinstance(reload, bool):
            raise ValueError("content.reload must be a boolean")

        return ContentConfig(
            file=paths["file"],
            files_dir=paths["files_dir"],
            layouts_dir=paths["layouts_dir"],
            reload=reload,
        )

    @classmethod
    def _parse_domains(cls, data: object) -> DomainsConfig:
        if data is None:
            return DomainsConfig()

        if not isinstance(data, dict):
            raise ValueError("domains section must be a dictionary")

        canonical_host = data.get("canonical_host", "localhost:8080")
        if not isinstance(canonical_host, str) or not canonical_host:
            raise ValueError("domains.canonical_host must be a non-empty string")

        scheme = data.get("scheme", "http")
        if scheme not in ("http", "https"):
            raise ValueError("domains.scheme must be 'http' or 'https'")

        return DomainsConfig(canonical_host=canonical_host, scheme=scheme)

    @classmethod
    def _parse_caching(cls, data: object) -> CachingConfig:
        if data is None:
            return CachingConfig()

        if not isinstance(data, dict):
            raise ValueError("caching section must be a dictionary")

        enabled = data.get("enabled", False)
        if not isinstance(enabled, bool):
            raise ValueError("caching.enabled must be a boolean")

        max_age = data.get("max_age", 300)
        if not isinstance(max_age, int) or isinstance(max_age, bool) or max_age < 0:
            raise ValueError("caching.max_age must be a non-negative integer")

        return CachingConfig(enabled=enabled, max_age=max_age)

    @classmethod
    def _parse_portlets(cls, data: object) -> PortletsConfig:
        if data is None:
            return PortletsConfig()

        if not isinstance(data, dict):
            raise ValueError("portlets section must be a dictionary")

        timeout = data.get("timeout", 5.0)
        if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0:
            raise ValueError("portlets.timeout must be a positive number")

        concurrent = data.get("concurrent", True)
        if not isinstance(concurrent, bool):
            raise ValueError("portlets.concurrent must be a boolean")

        return PortletsConfig(timeout=float(timeout), concurrent=concurrent)

    @classmethod
    def _parse_bindings(cls, data: object) -> BindingsConfig:
        if data is None:
            return BindingsConfig()

        if not isinstance(data, dict):
            raise ValueError("bindings section must be a dictionary")

        modules_raw = data.get("modules", [])
        if not isinstance(modules_raw, list):
            raise ValueError("bindings.modules must be a list")
        modules: list[str] = []
        for item in modules_raw:
            if not isinstance(item, str):
                raise ValueError("bindings.modules items must be strings")
            modules.append(item)

        return BindingsConfig(modules=modules)

    @classmethod
    def _parse_auth(cls, data: object) -> AuthConfig:
        if data is None:
            return AuthConfig()

        if not isinstance(data, dict):
            raise ValueError("auth section must be a dictionary")

        defaults = AuthConfig()
        values: dict[str, str] = {}
        for key in ("groups_header", "editor_header", "user_header", "edit_mode_cookie"):
            value = data.get(key, getattr(defaults, key))
            if not isinstance(value, str):
                raise ValueError(f"auth.{key} must be a string")
            values[key] = value

        return AuthConfig(**values)

    def with_overrides(
        self,
        *,
        host: str | None = None,
        port: int | None = None,
        content_file: Path | None = None,
        canonical_host: str | None = None,
        caching_enabled: bool | None = None,
        reload: bool | None = None,
    ) -> "Config":
        """Create a new Config with CLI overrides applied.

        Only non-None values override the existing config. The original
        Config is not modified.
        """
        server = self.server
        if host is not None or port is not None:
            server = replace(
                self.server,
                host=host if host is not None else self.server.host,
                port=port if port is not None else self.server.port,
            )

        content = self.content
        if content_file is not None or reload is not None:
            content = replace(
                self.content,
                file=content_file if content_file is not None else self.content.file,
                reload=reload if reload is not None else self.content.reload,
            )

        domains = self.domains
        if canonical_host is not None:
            domains = replace(self.domains, canonical_host=canonical_host)

        caching = self.caching
        if caching_enabled is not None:
            caching = replace(self.caching, enabled=caching_enabled)

        return replace(
            self,
            server=server,
            content=content,
            domains=domains,
            caching=caching,
        )
