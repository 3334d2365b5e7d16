"""Request pipeline.

resolve -> authorize -> route by domain -> execute portlets -> aggregate -> render

Resolution and authorization failures short-circuit before any portlet
runs. The pipeline holds no per-request state; the catalog it reads is
swapped atomically by the holder when content is reloaded.
"""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from urllib.parse import quote, urlencode

from cmsstage.core.access import Requester, authorize
from cmsstage.core.catalog import Catalog, ContentNodeType, DynamicRoute, Page
from cmsstage.core.domains import DomainPolicy, RenderMode, decide_render_mode
from cmsstage.core.errors import NotFoundError
from cmsstage.core.outcome import Redirect, RenderOutcome, ResolutionFailure, Success, aggregate
from cmsstage.core.portlets import PortletExecutor
from cmsstage.core.renderer import Renderer, Response
from cmsstage.core.types import HostKind, URLPath, normalize_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContentRequest:
    """Inbound request as seen by the pipeline."""

    host: str
    path: str
    query: Mapping[str, str] = field(default_factory=dict)
    requester: Requester = field(default_factory=Requester)
    preview: bool = False
    target: str | None = None

    @property
    def content_path(self) -> URLPath:
        """Path of the requested content.

        The root path addressed with a ``path`` query parameter
        (``/?path=about``) refers to that content path.
        """
        if self.path.strip("/") == "" and self.query.get("path"):
            return normalize_path(self.query["path"])
        return normalize_path(self.path)

    @property
    def raw_target(self) -> str:
        """Path and query as sent by the client, still percent-encoded.

        Falls back to encoding ``path`` and ``query`` when the transport
        did not supply the original request target.
        """
        if self.target is not None:
            return self.target
        target = quote(self.path or "/")
        if self.query:
            target = f"{target}?{urlencode(dict(self.query))}"
        return target


class CatalogHolder:
    """Holds the current catalog; replaced wholesale on reload."""

    __slots__ = ("_catalog",)

    def __init__(self, catalog: Catalog) -> None:
        self._catalog = catalog

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    def swap(self, catalog: Catalog) -> None:
        self._catalog = catalog


@dataclass(frozen=True)
class Evaluation:
    """Outcome of the pipeline before rendering."""

    outcome: RenderOutcome
    mode: RenderMode
    cacheable: bool = False


class ContentPipeline:
    """Resolves, authorizes, composes and renders content requests."""

    def __init__(
        self,
        catalog: CatalogHolder,
        executor: PortletExecutor,
        renderer: Renderer,
        domains: DomainPolicy,
        *,
        caching_enabled: bool = False,
    ) -> None:
        """Initialize pipeline.

        Args:
            catalog: Holder of the read-only content catalog
            executor: Portlet executor
            renderer: Response renderer
            domains: Canonical host policy
            caching_enabled: Process-wide caching mode, fixed for the process lifetime
        """
        self._catalog = catalog
        self._executor = executor
        self._renderer = renderer
        self._domains = domains
        self._caching_enabled = caching_enabled

    @property
    def caching_enabled(self) -> bool:
        return self._caching_enabled

    async def resolve_and_render(
        self,
        host: str,
        path: str,
        query: Mapping[str, str],
        requester: Requester,
    ) -> Response:
        """Handle one request end to end."""
        return await self.handle(ContentRequest(host=host, path=path, query=query, requester=requester))

    async def handle(self, request: ContentRequest) -> Response:
        evaluation = await self.evaluate(request)
        # Rendering reads file sources from disk
        return await asyncio.to_thread(
            self._renderer.render,
            evaluation.outcome,
            request.requester,
            mode=evaluation.mode,
            cacheable=evaluation.cacheable,
        )

    async def evaluate(self, request: ContentRequest) -> Evaluation:
        """Run the pipeline up to (not including) rendering."""
        catalog = self._catalog.catalog
        path = request.content_path
        requester = request.requester

        try:
            node = catalog.resolve(path)
        except NotFoundError as e:
            logger.debug(f"No content at {path}")
            failure = ResolutionFailure(path, str(e))
            return Evaluation(aggregate(path, None, failure, None, None), RenderMode.PUBLIC)

        decision = authorize(catalog, node, requester, preview=request.preview)
        if not decision.allowed:
            logger.debug(f"{path} refused to {requester.login or 'guest'}: {decision.reason}")
            return Evaluation(aggregate(path, node, None, decision, None), RenderMode.PUBLIC)

        host = self._domains.classify(request.host)
        mode = decide_render_mode(self._caching_enabled, host, requester.is_editor, requester.edit_mode)
        if mode is RenderMode.REDIRECT:
            location = self._domains.canonical_url(request.raw_target)
            logger.debug(f"Redirecting {request.host}{request.path} to {location}")
            return Evaluation(Redirect(location), mode)

        execution = None
        if isinstance(node, (Page, DynamicRoute)):
            page = node.page if isinstance(node, DynamicRoute) else node
            route = node.route if isinstance(node, DynamicRoute) else None
            params = dict(request.query)
            if isinstance(node, DynamicRoute):
                params.update(node.params)
            execution = await self._executor.execute_page(page, params, requester, route)

        outcome = aggregate(path, node, None, decision, execution)
        cacheable = (
            self._caching_enabled
            and host is HostKind.CANONICAL
            and mode is RenderMode.PUBLIC
            and isinstance(outcome, Success)
            and not outcome.annotations
            and not _is_protected(catalog, node)
        )
        return Evaluation(outcome, mode, cacheable)


def _is_protected(catalog: Catalog, node: ContentNodeType) -> bool:
    return any(section.protected for section in catalog.section_chain(node.section))
