from routehost.services.routes.executor import RouteExecutor, SubprocessRouteExecutor
from routehost.services.routes.payload import POST_KEY, SID_KEY, augment_query
from routehost.services.routes.registry import RouteRegistry, RouteUnit

__all__ = [
    "POST_KEY",
    "SID_KEY",
    "RouteExecutor",
    "RouteRegistry",
    "RouteUnit",
    "SubprocessRouteExecutor",
    "augment_query",
]
