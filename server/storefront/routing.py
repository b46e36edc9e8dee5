# ─────────────────────────────────────────────────────────────────────────────
# GuardedRoute — admission and admin checks ahead of body parsing
# ─────────────────────────────────────────────────────────────────────────────
# FastAPI reads and validates the request body before it resolves route
# dependencies, so a throttled client sending malformed JSON would get a 400
# and a multipart upload would be spooled before anyone checked the caller.
# This route class runs the route's RateLimit and require_admin dependencies
# first, in declaration order. The Depends entries stay on the route (they
# document the guard in OpenAPI) and see the recorded result on request.state.
#
# Usage:
#     router = APIRouter(route_class=GuardedRoute)
# ─────────────────────────────────────────────────────────────────────────────

from collections.abc import Callable, Coroutine
from typing import Any

from fastapi import Request, Response
from fastapi.routing import APIRoute

from storefront.auth import require_admin
from storefront.ratelimit import RateLimit

RouteHandler = Callable[[Request], Coroutine[Any, Any, Response]]


def _is_guard(dependency: Any) -> bool:
    return isinstance(dependency, RateLimit) or dependency is require_admin


class GuardedRoute(APIRoute):
    def get_route_handler(self) -> RouteHandler:
        handler = super().get_route_handler()
        guards = [d.dependency for d in self.dependencies if _is_guard(d.dependency)]
        if not guards:
            return handler

        async def guarded_handler(request: Request) -> Response:
            for guard in guards:
                await guard(request)
            return await handler(request)

        return guarded_handler
