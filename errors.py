"""
Error taxonomy for the navigation engine.

InvalidGeometry, NoReachablePoint and NoRoute are recoverable by the caller
(show a message, widen the radius, fall back to a default start).
RouteInvariantError is a defect and must not be caught by request handlers.
"""


class NavigationError(Exception):
    """Base class for recoverable navigation failures."""


class InvalidGeometry(NavigationError, ValueError):
    """Malformed road feature or coordinate."""


class NoReachablePoint(NavigationError):
    """A query coordinate has no graph attachment within its radius."""

    def __init__(self, point, radius_m: float, label: str = "point"):
        self.point = point
        self.radius_m = radius_m
        self.label = label
        super().__init__(f"{label} {point} is farther than {radius_m:g} m from any path")


class NoRoute(NavigationError):
    """Both ends snapped, but they lie in disconnected components."""

    def __init__(self, source, target):
        self.source = source
        self.target = target
        super().__init__(f"no path between {source} and {target}")


class RouteInvariantError(AssertionError):
    """Internal inconsistency in a solved route."""
