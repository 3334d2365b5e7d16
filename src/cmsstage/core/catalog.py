"""Content catalog with path resolution.

Holds the read-only content tree (sections, pages, files) and resolves
request paths to content nodes. Resolution order is files, then pages,
then page routes in page-then-route declaration order.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PurePosixPath

from cmsstage.core.errors import NotFoundError
from cmsstage.core.types import DEFAULT_LAYOUT, GUEST_GROUP, ROOT_SECTION, URLPath, normalize_path

_PARAM_SEGMENT = re.compile(r"^:([A-Za-z_][A-Za-z0-9_]*)$")


@dataclass(frozen=True)
class Section:
    """Node in the section tree.

    ``groups`` is the explicit grant list; ``None`` inherits from the parent.
    A section whose explicit grant list omits the guest group is protected.
    """

    name: str
    parent: str | None = ROOT_SECTION
    groups: frozenset[str] | None = None

    @property
    def protected(self) -> bool:
        return self.groups is not None and GUEST_GROUP not in self.groups


@dataclass(frozen=True)
class Portlet:
    """Content fragment attached to a page container."""

    name: str
    container: str = "main"
    template: str | None = None
    code: str | None = None
    markdown: bool = False


@dataclass(frozen=True)
class PageRoute:
    """Dynamic route owned by a page.

    Patterns are absolute paths; a ``:name`` segment captures one path
    segment as a parameter. Matching is case-sensitive and anchored on the
    full path.
    """

    pattern: str
    handler: str | None = None
    name: str = ""
    _regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_regex", _compile_pattern(self.pattern))

    def match(self, path: str) -> dict[str, str] | None:
        """Match a normalized path against the pattern.

        Returns:
            Extracted parameters if the pattern matches, None otherwise
        """
        matched = self._regex.fullmatch(path)
        if matched is None:
            return None
        return matched.groupdict()


def _compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a route pattern into an anchored regex.

    Raises:
        ValueError: If a parameter name is used twice
    """
    parts = []
    seen: set[str] = set()
    for segment in normalize_path(pattern).split("/")[1:]:
        param = _PARAM_SEGMENT.match(segment)
        if param is None:
            parts.append(re.escape(segment))
            continue
        name = param.group(1)
        if name in seen:
            raise ValueError(f"Route pattern {pattern} repeats parameter '{name}'")
        seen.add(name)
        parts.append(f"(?P<{name}>[^/]+)")
    return re.compile("/" + "/".join(parts))


@dataclass(frozen=True, kw_only=True)
class ContentNode:
    """Attributes shared by every resolvable node."""

    path: URLPath
    section: str = ROOT_SECTION
    archived: bool = False
    published_at: datetime | None = None

    @property
    def published(self) -> bool:
        return self.published_at is not None


@dataclass(frozen=True, kw_only=True)
class Page(ContentNode):
    """Page composed from portlets inside a layout."""

    title: str
    layout: str = DEFAULT_LAYOUT
    portlets: tuple[Portlet, ...] = ()
    routes: tuple[PageRoute, ...] = ()

    def containers(self) -> dict[str, list[Portlet]]:
        """Group portlets by container, preserving attachment order."""
        result: dict[str, list[Portlet]] = {}
        for portlet in self.portlets:
            result.setdefault(portlet.container, []).append(portlet)
        return result


@dataclass(frozen=True, kw_only=True)
class File(ContentNode):
    """Downloadable file served inline."""

    source: Path
    content_type: str = "application/octet-stream"

    @property
    def filename(self) -> str:
        return PurePosixPath(self.path).name


@dataclass(frozen=True)
class DynamicRoute:
    """A page reached through one of its routes.

    Lifecycle and ownership are those of the owning page.
    """

    page: Page
    route: PageRoute
    path: URLPath
    params: dict[str, str] = field(default_factory=dict)

    @property
    def section(self) -> str:
        return self.page.section

    @property
    def archived(self) -> bool:
        return self.page.archived

    @property
    def published_at(self) -> datetime | None:
        return self.page.published_at

    @property
    def published(self) -> bool:
        return self.page.published


ContentNodeType = Page | File | DynamicRoute


class Catalog:
    """Read-only content catalog.

    Built once by CatalogBuilder and shared by all requests.
    """

    __slots__ = ("_files", "_page_index", "_pages", "_sections")

    def __init__(
        self,
        sections: dict[str, Section],
        pages: list[Page],
        files: list[File],
    ) -> None:
        self._sections = sections
        self._pages = pages
        self._page_index = {page.path: page for page in pages}
        self._files = {file.path: file for file in files}

    @property
    def pages(self) -> list[Page]:
        return list(self._pages)

    @property
    def files(self) -> list[File]:
        return list(self._files.values())

    def resolve(self, path: str) -> ContentNodeType:
        """Resolve a request path to a content node.

        Args:
            path: Request path (e.g., "about" or "/about")

        Returns:
            File, Page or DynamicRoute

        Raises:
            NotFoundError: If nothing matches the path
        """
        normalized = normalize_path(path)

        file = self._files.get(normalized)
        if file is not None:
            return file

        page = self._page_index.get(normalized)
        if page is not None:
            return page

        for page in self._pages:
            for route in page.routes:
                params = route.match(normalized)
                if params is not None:
                    return DynamicRoute(page=page, route=route, path=normalized, params=params)

        raise NotFoundError(f"There is no page at {normalized}")

    def get_section(self, name: str) -> Section:
        """Get section by name.

        Raises:
            KeyError: If section is unknown
        """
        return self._sections[name]

    def section_chain(self, name: str) -> list[Section]:
        """Return the section and its ancestors, nearest first."""
        chain: list[Section] = []
        current: str | None = name
        while current is not None:
            section = self._sections[current]
            chain.append(section)
            current = section.parent
        return chain


class CatalogBuilder:
    """Builder for constructing Catalog instances."""

    def __init__(self) -> None:
        self._sections: dict[str, Section] = {
            ROOT_SECTION: Section(name=ROOT_SECTION, parent=None, groups=frozenset({GUEST_GROUP})),
        }
        self._pages: list[Page] = []
        self._files: list[File] = []
        self._paths: set[str] = set()

    def add_section(
        self,
        name: str,
        parent: str = ROOT_SECTION,
        groups: set[str] | frozenset[str] | None = None,
    ) -> Section:
        """Add a section to the tree.

        Raises:
            ValueError: If the name is already taken
        """
        if name in self._sections:
            raise ValueError(f"Duplicate section: {name}")
        section = Section(
            name=name,
            parent=parent,
            groups=frozenset(groups) if groups is not None else None,
        )
        self._sections[name] = section
        return section

    def add_page(self, page: Page) -> Page:
        """Add a page.

        Raises:
            ValueError: If the path is already taken
        """
        self._claim_path(page.path)
        self._pages.append(page)
        return page

    def add_file(self, file: File) -> File:
        """Add a file.

        Raises:
            ValueError: If the path is already taken
        """
        self._claim_path(file.path)
        self._files.append(file)
        return file

    def build(self) -> Catalog:
        """Build the Catalog instance.

        Raises:
            ValueError: If a node or section refers to an unknown or cyclic section
        """
        for section in self._sections.values():
            self._check_ancestry(section)
        for node in [*self._pages, *self._files]:
            if node.section not in self._sections:
                raise ValueError(f"Unknown section '{node.section}' for {node.path}")
        return Catalog(
            sections=dict(self._sections),
            pages=list(self._pages),
            files=list(self._files),
        )

    def _claim_path(self, path: str) -> None:
        if path in self._paths:
            raise ValueError(f"Duplicate content path: {path}")
        self._paths.add(path)

    def _check_ancestry(self, section: Section) -> None:
        seen = {section.name}
        current = section.parent
        while current is not None:
            parent = self._sections.get(current)
            if parent is None:
                raise ValueError(f"Unknown parent section '{current}' for section '{section.name}'")
            if parent.name in seen:
                raise ValueError(f"Section cycle detected at '{section.name}'")
            seen.add(parent.name)
            current = parent.parent
