"""An asynchronous middleware chain ending in a default handler."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import Any


class Middleware:
    """A link in the chain; by default it only passes the request on."""

    async def handle(self, ctx: Any, req: Any, next: Next) -> Any:
        return await next.run(ctx, req)


class MiddlewareDefaultHandler(ABC):
    """The handler reached after every middleware has passed the request on."""

    @abstractmethod
    async def handle(self, ctx: Any, req: Any) -> Any:
        """Produce the response for a request."""


class Next:
    """The rest of the chain, as seen from one middleware."""

    def __init__(self, default: Any, middlewares: Iterable[Any]) -> None:
        self.default = default
        self.middlewares: tuple[Any, ...] = tuple(middlewares)

    async def run(self, ctx: Any, req: Any) -> Any:
        """Run the next middleware, or the default handler when none is left."""
        if not self.middlewares:
            if isinstance(self.default, MiddlewareDefaultHandler):
                return await self.default.handle(ctx, req)
            return await self.default(ctx, req)
        current, *rest = self.middlewares
        following = Next(self.default, rest)
        if isinstance(current, Middleware):
            return await current.handle(ctx, req, following)
        return await current(ctx, req, following)


class MiddlewareHost:
    """A built chain that can execute requests."""

    def __init__(self, default: Any, middlewares: Sequence[Any]) -> None:
        self.default = default
        self.middlewares: tuple[Any, ...] = tuple(middlewares)

    async def execute(self, ctx: Any, req: Any) -> Any:
        return await Next(self.default, self.middlewares).run(ctx, req)

    @classmethod
    def from_next(cls, next: Next) -> MiddlewareHost:
        """Build a host from the remaining part of a chain."""
        return cls(next.default, next.middlewares)


class MiddlewareBuilder:
    """Collects middlewares in the order they will run."""

    def __init__(self, default: Any) -> None:
        self.default = default
        self._stack: list[Any] = []

    def add(self, middleware: Any) -> MiddlewareBuilder:
        self._stack.append(middleware)
        return self

    def build(self) -> MiddlewareHost:
        return MiddlewareHost(self.default, self._stack)