"""Executable bindings for portlets and page routes.

A binding is a named callable that receives a PortletContext and returns a
mapping merged into the data context (or None after mutating ``ctx.data``).
Bindings never see more than the context exposes.
"""

import asyncio
import contextvars
import importlib
import inspect
import logging
import threading
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, NoReturn

from cmsstage.core.access import Requester
from cmsstage.core.errors import AccessDeniedError, NotFoundError

logger = logging.getLogger(__name__)

BindingResult = Mapping[str, Any] | None
Binding = Callable[["PortletContext"], BindingResult | Awaitable[BindingResult]]


@dataclass(frozen=True)
class PageInfo:
    """Read-only page facts exposed to bindings and templates."""

    title: str
    path: str


@dataclass
class PortletContext:
    """Capabilities handed to a binding."""

    params: Mapping[str, str]
    page: PageInfo
    requester: Requester
    data: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.params = MappingProxyType(dict(self.params))

    def not_found(self, message: str = "Not found") -> NoReturn:
        raise NotFoundError(message)

    def access_denied(self, message: str = "Access denied") -> NoReturn:
        raise AccessDeniedError(message)


class BindingRegistry:
    """Name to callable registry for bindings."""

    def __init__(self) -> None:
        self._bindings: dict[str, Binding] = {}

    def register(self, name: str) -> Callable[[Binding], Binding]:
        """Decorator registering a binding under a name.

        Raises:
            ValueError: If the name is already registered
        """

        def decorator(func: Binding) -> Binding:
            self.add(name, func)
            return func

        return decorator

    def add(self, name: str, func: Binding) -> None:
        if name in self._bindings:
            raise ValueError(f"Binding already registered: {name}")
        self._bindings[name] = func

    def get(self, name: str) -> Binding:
        """Look up a binding.

        Raises:
            KeyError: If no binding has that name
        """
        return self._bindings[name]

    def __contains__(self, name: object) -> bool:
        return name in self._bindings

    def names(self) -> list[str]:
        return sorted(self._bindings)

    def load_modules(self, modules: list[str]) -> None:
        """Import modules that register bindings on import."""
        for module in modules:
            logger.debug(f"Importing binding module {module}")
            importlib.import_module(module)

    async def invoke(self, name: str, ctx: PortletContext) -> dict[str, Any]:
        """Run a binding and merge its result into ``ctx.data``.

        Sync callables run on a dedicated daemon thread; coroutine functions
        are awaited.

        Returns:
            The updated data context
        """
        func = self.get(name)
        if inspect.iscoroutinefunction(func):
            result = await func(ctx)
        else:
            result = await _run_in_thread(name, func, ctx)
        if result is not None:
            ctx.data.update(result)
        return ctx.data


async def _run_in_thread(name: str, func: Binding, ctx: PortletContext) -> BindingResult:
    loop = asyncio.get_running_loop()
    future: asyncio.Future[BindingResult] = loop.create_future()

    def settle(result: BindingResult, error: Exception | None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def run() -> None:
        result: BindingResult = None
        error: Exception | None = None
        try:
            result = func(ctx)  # type: ignore[assignment]
        except Exception as e:
            error = e
        try:
            loop.call_soon_threadsafe(settle, result, error)
        except RuntimeError:
            logger.debug(f"Binding '{name}' finished after its event loop closed")

    context = contextvars.copy_context()
    threading.Thread(target=context.run, args=(run,), name=f"binding-{name}", daemon=True).start()
    return await future


def copy_params(ctx: PortletContext) -> BindingResult:
    """Expose every request parameter to the template."""
    return dict(ctx.params)


def raise_not_found(ctx: PortletContext) -> BindingResult:
    ctx.not_found(f"{ctx.page.path} has no content here")


def raise_access_denied(ctx: PortletContext) -> BindingResult:
    ctx.access_denied(f"{ctx.page.path} is restricted")


def create_registry() -> BindingRegistry:
    """Create a registry preloaded with the built-in bindings."""
    fresh = BindingRegistry()
    fresh.add("copy_params", copy_params)
    fresh.add("not_found", raise_not_found)
    fresh.add("access_denied", raise_access_denied)
    return fresh


# Default registry; binding modules listed in the config register here.
registry = create_registry()
