from importlib.metadata import version

from .errors import HandlerResolutionError, PatternError, RouterError
from .handlers import ImportRegistry, MappingRegistry
from .request import Request
from .router import Router, Transport, http_route, path_params

__all__ = [
    "HandlerResolutionError",
    "ImportRegistry",
    "MappingRegistry",
    "PatternError",
    "Request",
    "Router",
    "RouterError",
    "Transport",
    "__version__",
    "http_route",
    "path_params",
]

__version__ = version("regmux")
