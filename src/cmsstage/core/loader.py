"""Catalog loading from a TOML content file.

Content file structure:
    [[sections]]            name, parent, groups
    [[pages]]               path, title, section, layout, published,
                            published_at, archived
    [[pages.portlets]]      name, container, template, code, markdown
    [[pages.routes]]        pattern, handler, name
    [[files]]               path, source, section, content_type,
                            published, published_at, archived
"""

import logging
import mimetypes
import tomllib
from datetime import UTC, date, datetime
from pathlib import Path

from cmsstage.core.bindings import BindingRegistry
from cmsstage.core.catalog import Catalog, CatalogBuilder, File, Page, PageRoute, Portlet
from cmsstage.core.templates import TemplateEngine
from cmsstage.core.types import DEFAULT_LAYOUT, ROOT_SECTION, normalize_path

logger = logging.getLogger(__name__)


class CatalogLoader:
    """Loads a Catalog from a content file.

    Binding names referenced by portlets and routes are checked against the
    registry, and page layouts against the template engine, so that typos
    fail at load time rather than per request.
    """

    def __init__(
        self,
        content_file: Path,
        bindings: BindingRegistry | None = None,
        templates: TemplateEngine | None = None,
    ) -> None:
        """Initialize loader.

        Args:
            content_file: Path to the TOML content file
            bindings: Registry used to validate binding names (skipped if None)
            templates: Engine used to validate page layouts (skipped if None)
        """
        self._content_file = content_file
        self._bindings = bindings
        self._templates = templates

    @property
    def content_file(self) -> Path:
        return self._content_file

    def load(self) -> Catalog:
        """Load and build the catalog.

        Raises:
            FileNotFoundError: If the content file doesn't exist
            ValueError: If the content is invalid
        """
        if not self._content_file.exists():
            raise FileNotFoundError(f"Content file not found: {self._content_file}")

        with self._content_file.open("rb") as f:
            try:
                data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ValueError(f"Invalid content file {self._content_file}: {e}") from e

        catalog = self.load_data(data)
        logger.info(
            f"Loaded {len(catalog.pages)} pages and {len(catalog.files)} files from {self._content_file}",
        )
        return catalog

    def load_data(self, data: dict[str, object]) -> Catalog:
        """Build a catalog from already parsed content data.

        Raises:
            ValueError: If the content is invalid
        """
        builder = CatalogBuilder()
        loaded_at = datetime.now(UTC)

        for item in _table_list(data, "sections"):
            name = _required_str(item, "name", "sections")
            parent = _optional_str(item, "parent", "sections") or ROOT_SECTION
            groups_raw = item.get("groups")
            groups: set[str] | None = None
            if groups_raw is not None:
                groups = set(_str_list(groups_raw, f"sections.{name}.groups"))
            builder.add_section(name, parent=parent, groups=groups)

        for item in _table_list(data, "pages"):
            builder.add_page(self._parse_page(item, loaded_at))

        for item in _table_list(data, "files"):
            builder.add_file(self._parse_file(item, loaded_at))

        return builder.build()

    def _parse_page(self, item: dict[str, object], loaded_at: datetime) -> Page:
        path = normalize_path(_required_str(item, "path", "pages"))
        where = f"pages[{path}]"

        portlets: list[Portlet] = []
        for index, raw in enumerate(_table_list(item, "portlets", where)):
            code = _optional_str(raw, "code", f"{where}.portlets")
            self._check_binding(code, where)
            markdown = raw.get("markdown", False)
            if not isinstance(markdown, bool):
                raise ValueError(f"{where}.portlets.markdown must be a boolean")
            portlets.append(
                Portlet(
                    name=_optional_str(raw, "name", f"{where}.portlets") or f"portlet-{index + 1}",
                    container=_optional_str(raw, "container", f"{where}.portlets") or "main",
                    template=_optional_str(raw, "template", f"{where}.portlets"),
                    code=code,
                    markdown=markdown,
                ),
            )

        routes: list[PageRoute] = []
        for raw in _table_list(item, "routes", where):
            pattern = _required_str(raw, "pattern", f"{where}.routes")
            if not pattern.startswith("/"):
                raise ValueError(f"{where}.routes.pattern must start with '/': {pattern}")
            handler = _optional_str(raw, "handler", f"{where}.routes")
            self._check_binding(handler, where)
            try:
                route = PageRoute(
                    pattern=pattern,
                    handler=handler,
                    name=_optional_str(raw, "name", f"{where}.routes") or "",
                )
            except ValueError as e:
                raise ValueError(f"{where}.routes: {e}") from e
            routes.append(route)

        layout = _optional_str(item, "layout", where) or DEFAULT_LAYOUT
        self._check_layout(layout, where)

        return Page(
            path=path,
            title=_optional_str(item, "title", where) or path,
            section=_optional_str(item, "section", where) or ROOT_SECTION,
            layout=layout,
            archived=_bool(item, "archived", where, default=False),
            published_at=_published_at(item, where, loaded_at),
            portlets=tuple(portlets),
            routes=tuple(routes),
        )

    def _parse_file(self, item: dict[str, object], loaded_at: datetime) -> File:
        path = normalize_path(_required_str(item, "path", "files"))
        where = f"files[{path}]"
        source = _optional_str(item, "source", where) or path.lstrip("/")
        content_type = _optional_str(item, "content_type", where)
        if content_type is None:
            content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"

        return File(
            path=path,
            section=_optional_str(item, "section", where) or ROOT_SECTION,
            source=Path(source),
            content_type=content_type,
            archived=_bool(item, "archived", where, default=False),
            published_at=_published_at(item, where, loaded_at),
        )

    def _check_binding(self, name: str | None, where: str) -> None:
        if name is None or self._bindings is None:
            return
        if name not in self._bindings:
            raise ValueError(f"{where} refers to unknown binding '{name}'")

    def _check_layout(self, layout: str, where: str) -> None:
        if self._templates is None:
            return
        try:
            self._templates.check_layout(layout)
        except ValueError as e:
            raise ValueError(f"{where}: {e}") from e


def _table_list(data: dict[str, object], key: str, where: str = "") -> list[dict[str, object]]:
    raw = data.get(key, [])
    label = f"{where}.{key}" if where else key
    if not isinstance(raw, list):
        raise ValueError(f"{label} must be an array of tables")
    for item in raw:
        if not isinstance(item, dict):
            raise ValueError(f"{label} items must be tables")
    return raw


def _required_str(item: dict[str, object], key: str, where: str) -> str:
    value = item.get(key)
    if not isinstance(value, str):
        raise ValueError(f"{where}.{key} must be a string")
    return value


def _optional_str(item: dict[str, object], key: str, where: str) -> str | None:
    value = item.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{where}.{key} must be a string")
    return value


def _str_list(value: object, where: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{where} must be a list of strings")
    return value


def _bool(item: dict[str, object], key: str, where: str, *, default: bool) -> bool:
    value = item.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"{where}.{key} must be a boolean")
    return value


def _published_at(item: dict[str, object], where: str, loaded_at: datetime) -> datetime | None:
    """Resolve publication time from ``published_at`` or the ``published`` flag."""
    value = item.get("published_at")
    if value is not None:
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=UTC)
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day, tzinfo=UTC)
        raise ValueError(f"{where}.published_at must be a date or datetime")

    return loaded_at if _bool(item, "published", where, default=True) else None
