"""Page-level outcomes and failure aggregation.

Precedence, highest first:
  1. resolution or lifecycle not-found
  2. authorization denial
  3. any portlet not-found
  4. any portlet denial
  5. success, with generically failing portlets omitted

Not-found outranks access-denied among portlets so that a denial never
confirms the existence of content that should stay hidden.
"""

from dataclasses import dataclass

from cmsstage.core.access import AccessDecision, Verdict
from cmsstage.core.catalog import ContentNodeType
from cmsstage.core.portlets import FragmentStatus, PageExecution


@dataclass(frozen=True)
class Success:
    """Content is renderable; ``execution`` is None for files."""

    node: ContentNodeType
    execution: PageExecution | None = None
    annotations: frozenset[str] = frozenset()


@dataclass(frozen=True)
class Redirect:
    location: str


@dataclass(frozen=True)
class NotFound:
    path: str
    detail: str = ""


@dataclass(frozen=True)
class AccessDenied:
    path: str
    detail: str = ""


RenderOutcome = Success | Redirect | NotFound | AccessDenied


@dataclass(frozen=True)
class ResolutionFailure:
    """Path resolution failed before any access check."""

    path: str
    detail: str = ""


def aggregate(
    path: str,
    node: ContentNodeType | None,
    resolution_failure: ResolutionFailure | None,
    decision: AccessDecision | None,
    execution: PageExecution | None,
) -> RenderOutcome:
    """Reduce resolution, authorization and portlet outcomes to one outcome.

    Args:
        path: Requested content path
        node: Resolved node, None if resolution failed
        resolution_failure: Set when the path did not resolve
        decision: Authorization result, None if never evaluated
        execution: Portlet execution result, None if never run

    Returns:
        RenderOutcome for the whole request
    """
    if resolution_failure is not None or node is None:
        detail = resolution_failure.detail if resolution_failure else ""
        return NotFound(path, detail or f"There is no page at {path}")

    if decision is not None:
        if decision.verdict is Verdict.NOT_FOUND:
            return NotFound(path, decision.reason)
        if decision.verdict is Verdict.DENIED:
            return AccessDenied(path, decision.reason)

    if execution is not None:
        statuses = {outcome.status for outcome in execution.outcomes}
        if FragmentStatus.NOT_FOUND in statuses:
            return NotFound(path, _first_message(execution, FragmentStatus.NOT_FOUND))
        if FragmentStatus.DENIED in statuses:
            return AccessDenied(path, _first_message(execution, FragmentStatus.DENIED))

    annotations = decision.annotations if decision is not None else frozenset()
    return Success(node=node, execution=execution, annotations=annotations)


def _first_message(execution: PageExecution, status: FragmentStatus) -> str:
    for outcome in execution.outcomes:
        if outcome.status is status:
            return f"Portlet '{outcome.name}': {outcome.message}"
    return ""
