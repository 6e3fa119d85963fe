"""Route catalog, probing, and resolution for CLI-backed fixers."""

from .catalog import (
    Binary,
    Route,
    RouteKey,
    Transport,
    Variant,
    build_route_candidates,
    order_routes_with_preferred,
)
from .prober import RouteProber
from .resolver import ROUTE_STATE_KEY, RouteResolver

__all__ = [
    "Binary",
    "ROUTE_STATE_KEY",
    "Route",
    "RouteKey",
    "RouteProber",
    "RouteResolver",
    "Transport",
    "Variant",
    "build_route_candidates",
    "order_routes_with_preferred",
]
