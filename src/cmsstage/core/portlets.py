"""Portlet execution.

Runs every portlet of a page in isolation and captures exactly one outcome
per portlet. A failing portlet never prevents its siblings from running, and
outcomes are always reported in attachment order.
"""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from markupsafe import Markup

from cmsstage.core.access import Requester
from cmsstage.core.bindings import BindingRegistry, PageInfo, PortletContext
from cmsstage.core.catalog import Page, PageRoute, Portlet
from cmsstage.core.errors import AccessDeniedError, NotFoundError
from cmsstage.core.templates import TemplateEngine

logger = logging.getLogger(__name__)


class FragmentStatus(StrEnum):
    RENDERED = "rendered"
    NOT_FOUND = "not_found"
    DENIED = "denied"
    GENERIC = "generic"


@dataclass(frozen=True)
class PortletOutcome:
    """Outcome of running one portlet (or a page route handler)."""

    name: str
    container: str
    status: FragmentStatus
    html: Markup = field(default_factory=Markup)
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status is FragmentStatus.RENDERED


@dataclass
class PageExecution:
    """Everything produced by executing a page's fragments."""

    data: dict[str, Any]
    outcomes: list[PortletOutcome]

    def containers(self) -> dict[str, Markup]:
        """Join successful fragment HTML per container in attachment order."""
        result: dict[str, Markup] = {}
        for outcome in self.outcomes:
            if not outcome.ok or not outcome.container:
                continue
            result[outcome.container] = result.get(outcome.container, Markup("")) + outcome.html
        return result


class PortletExecutor:
    """Executes portlet code and templates with per-portlet isolation.

    Each portlet gets its own copy of the request data context, so a
    portlet's mutations are invisible to its siblings. Execution is bounded
    by ``timeout`` seconds; exceeding it is a generic failure.
    """

    def __init__(
        self,
        bindings: BindingRegistry,
        templates: TemplateEngine,
        *,
        timeout: float = 5.0,
        concurrent: bool = True,
    ) -> None:
        self._bindings = bindings
        self._templates = templates
        self._timeout = timeout
        self._concurrent = concurrent

    async def execute_page(
        self,
        page: Page,
        params: Mapping[str, str],
        requester: Requester,
        route: PageRoute | None = None,
    ) -> PageExecution:
        """Run the route handler (if any) and then every portlet of the page.

        Args:
            page: Page whose portlets to run
            params: Query and route parameters
            requester: Requesting identity
            route: Route the page was reached through, if any

        Returns:
            PageExecution with the base data context and ordered outcomes
        """
        info = PageInfo(title=page.title, path=page.path)
        outcomes: list[PortletOutcome] = []
        data: dict[str, Any] = {}

        if route is not None and route.handler:
            ctx = PortletContext(params=params, page=info, requester=requester)
            handler_outcome = await self._run(
                route.name or route.pattern,
                "",
                ctx,
                code=route.handler,
                template=None,
            )
            outcomes.append(handler_outcome)
            if handler_outcome.ok:
                data = dict(ctx.data)

        portlet_runs = [
            self._run_portlet(portlet, PortletContext(params=params, page=info, requester=requester, data=dict(data)))
            for portlet in page.portlets
        ]
        if self._concurrent:
            outcomes.extend(await asyncio.gather(*portlet_runs))
        else:
            for run in portlet_runs:
                outcomes.append(await run)

        return PageExecution(data=data, outcomes=outcomes)

    async def _run_portlet(self, portlet: Portlet, ctx: PortletContext) -> PortletOutcome:
        return await self._run(
            portlet.name,
            portlet.container,
            ctx,
            code=portlet.code,
            template=portlet.template,
            markdown=portlet.markdown,
        )

    async def _run(
        self,
        name: str,
        container: str,
        ctx: PortletContext,
        *,
        code: str | None,
        template: str | None,
        markdown: bool = False,
    ) -> PortletOutcome:
        try:
            async with asyncio.timeout(self._timeout):
                if code:
                    await self._bindings.invoke(code, ctx)
                html = Markup("")
                if template is not None:
                    html = self._templates.render_fragment(
                        template,
                        {**ctx.data, "params": ctx.params, "page": ctx.page},
                        markdown=markdown,
                    )
        except NotFoundError as e:
            logger.info(f"Portlet '{name}' on {ctx.page.path} reported not found: {e}")
            return PortletOutcome(name, container, FragmentStatus.NOT_FOUND, message=str(e))
        except AccessDeniedError as e:
            logger.info(f"Portlet '{name}' on {ctx.page.path} denied access: {e}")
            return PortletOutcome(name, container, FragmentStatus.DENIED, message=str(e))
        except TimeoutError:
            logger.warning(f"Portlet '{name}' on {ctx.page.path} timed out after {self._timeout}s")
            return PortletOutcome(name, container, FragmentStatus.GENERIC, message="timed out")
        except Exception as e:
            logger.warning(f"Portlet '{name}' on {ctx.page.path} failed: {e!r}", exc_info=True)
            return PortletOutcome(name, container, FragmentStatus.GENERIC, message=repr(e))

        return PortletOutcome(name, container, FragmentStatus.RENDERED, html=html)
