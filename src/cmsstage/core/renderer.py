"""Response rendering.

Maps a RenderOutcome to status, headers and body: composed pages, inline
files, canonical redirects and the not-found and access-denied pages.
"""

import logging
from dataclasses import dataclass, field
from hashlib import md5
from pathlib import Path

from jinja2 import TemplateError

from cmsstage.core.access import Requester
from cmsstage.core.bindings import PageInfo
from cmsstage.core.catalog import DynamicRoute, File, Page
from cmsstage.core.domains import RenderMode
from cmsstage.core.outcome import AccessDenied, NotFound, Redirect, RenderOutcome, Success
from cmsstage.core.templates import TemplateEngine
from cmsstage.core.types import DEFAULT_LAYOUT

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPE = "text/html; charset=utf-8"
NO_STORE = "private, no-store"


@dataclass
class Response:
    """Transport-neutral HTTP response."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")


class Renderer:
    """Turns outcomes into responses."""

    def __init__(
        self,
        templates: TemplateEngine,
        files_dir: Path,
        *,
        cache_max_age: int = 300,
    ) -> None:
        """Initialize renderer.

        Args:
            templates: Engine for layouts and system pages
            files_dir: Root directory holding file node sources
            cache_max_age: max-age for responses that may be cached publicly
        """
        self._templates = templates
        self._files_dir = files_dir
        self._cache_max_age = cache_max_age

    def render(
        self,
        outcome: RenderOutcome,
        requester: Requester,
        *,
        mode: RenderMode = RenderMode.PUBLIC,
        cacheable: bool = False,
    ) -> Response:
        """Render an outcome.

        Args:
            outcome: Aggregated page-level outcome
            requester: Requesting identity (selects error page detail)
            mode: PUBLIC or EDITOR for successful pages
            cacheable: Whether a shared cache may store the response

        Returns:
            Response ready to be written by the transport
        """
        match outcome:
            case Redirect(location=location):
                return Response(302, {"Location": location, "Cache-Control": NO_STORE})
            case NotFound(path=path, detail=detail):
                return self._system_page(404, "not_found.html", path, detail, requester)
            case AccessDenied(path=path, detail=detail):
                return self._system_page(403, "access_denied.html", path, detail, requester)
            case Success(node=File() as file):
                return self._render_file(file, requester, cacheable=cacheable)
            case Success():
                return self._render_page(outcome, requester, mode=mode, cacheable=cacheable)
        raise TypeError(f"Unknown outcome: {outcome!r}")

    def _render_page(
        self,
        outcome: Success,
        requester: Requester,
        *,
        mode: RenderMode,
        cacheable: bool,
    ) -> Response:
        node = outcome.node
        page = node.page if isinstance(node, DynamicRoute) else node
        if not isinstance(page, Page):
            raise TypeError(f"Not a page: {node!r}")

        info = PageInfo(title=page.title, path=node.path)
        execution = outcome.execution
        annotations = sorted(outcome.annotations) if requester.is_editor else []
        context = {
            "page": info,
            "containers": execution.containers() if execution else {},
            "data": execution.data if execution else {},
            "annotations": annotations,
        }
        try:
            html = self._templates.render_layout(page.layout, context)
        except TemplateError as e:
            if page.layout == DEFAULT_LAYOUT:
                raise
            logger.error(f"Layout '{page.layout}' failed for {node.path}, using {DEFAULT_LAYOUT}: {e!r}")
            html = self._templates.render_layout(DEFAULT_LAYOUT, context)

        if mode is RenderMode.EDITOR:
            html = self._templates.render_layout(
                "editor.html",
                {"page": info, "body": html, "annotations": annotations},
            )
            cacheable = False

        body = html.encode("utf-8")
        headers = {"Content-Type": HTML_CONTENT_TYPE, **self._cache_headers(body, cacheable)}
        return Response(200, headers, body)

    def _render_file(self, file: File, requester: Requester, *, cacheable: bool) -> Response:
        source = self._files_dir / file.source
        try:
            body = source.read_bytes()
        except OSError as e:
            logger.warning(f"File {file.path} is missing its source {source}: {e}")
            return self._system_page(404, "not_found.html", file.path, "File source is missing", requester)

        headers = {
            "Content-Type": file.content_type,
            "Content-Disposition": f'inline; filename="{file.filename}"',
            **self._cache_headers(body, cacheable),
        }
        return Response(200, headers, body)

    def _system_page(
        self,
        status: int,
        template: str,
        path: str,
        detail: str,
        requester: Requester,
    ) -> Response:
        html = self._templates.render_layout(
            template,
            {
                "path": path,
                "detail": detail if requester.is_editor else "",
                "editor": requester.is_editor,
            },
        )
        return Response(
            status,
            {"Content-Type": HTML_CONTENT_TYPE, "Cache-Control": NO_STORE},
            html.encode("utf-8"),
        )

    def _cache_headers(self, body: bytes, cacheable: bool) -> dict[str, str]:
        if not cacheable:
            return {"Cache-Control": NO_STORE}
        return {
            "Cache-Control": f"public, max-age={self._cache_max_age}",
            "ETag": compute_etag(body),
        }


def compute_etag(body: bytes) -> str:
    # First 16 hex chars (64 bits) are enough for cache validation
    content_hash = md5(body, usedforsecurity=False).hexdigest()[:16]
    return f'"{content_hash}"'
