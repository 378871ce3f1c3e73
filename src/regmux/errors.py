"""regmux exception hierarchy.

Configuration problems are raised while routes are registered, resolution
problems while a request is dispatched. Exceptions raised by handlers are
never wrapped.
"""


class RouterError(Exception):
    """Base for all regmux errors."""


class PatternError(RouterError, ValueError):
    """A route pattern does not compile to a valid regular expression."""

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        super().__init__(f"invalid route pattern {pattern!r}: {reason}")


class HandlerResolutionError(RouterError, LookupError):
    """A ``"Controller@method"`` handler cannot be parsed or resolved."""
