"""Route pattern compilation and positional parameter extraction.

A route pattern is a regular expression in which any ``/{name}`` segment is
shorthand for a non-greedy wildcard. Placeholder names are discarded, so
parameters come back positionally:

    "/users/{id}/posts/{post}"  ->  r"/users/(.*?)/posts/(.*?)"

Plain regex groups work the same way, e.g. ``/movies/(\\d+)`` or the nested
optional ``/blog(/\\d+(/\\d+)?)?``.
"""

import re
from functools import lru_cache
from typing import TypeAlias

from regmux.errors import PatternError

Params: TypeAlias = tuple[str | None, ...]

_PLACEHOLDER = re.compile(r"/\{(.*?)\}")


def normalize_pattern(pattern: str, base_route: str = "") -> str:
    """Prefix pattern with the active mount base route and tidy its slashes.

    "/"       -> "/"
    "/users/" -> "/users"
    "/" mounted at "/api" -> "/api"
    """
    pattern = f"{base_route}/{pattern.strip('/')}"
    if base_route:
        pattern = pattern.rstrip("/")
    return pattern


def translate(pattern: str) -> str:
    """Replace ``/{name}`` placeholders with positional wildcard groups."""
    return _PLACEHOLDER.sub("/(.*?)", pattern)


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(translate(pattern))
    except re.error as e:
        raise PatternError(pattern, str(e)) from e


def match(pattern: str, uri: str) -> Params | None:
    """Match the whole uri against pattern, returning its parameters."""
    m = compile_pattern(pattern).fullmatch(uri)
    if m is None:
        return None
    return extract_params(m)


def extract_params(m: re.Match[str]) -> Params:
    """Collect group values using their offsets.

    A group followed by another participating group is cut where the next
    one starts, so nested optional groups each yield their own segment.
    Values are stripped of slashes; groups that did not participate are None.
    """
    params: list[str | None] = []
    groups = m.re.groups
    for index in range(1, groups + 1):
        value = m.group(index)
        if value is None:
            params.append(None)
            continue
        start = m.start(index)
        if index < groups:
            next_start = m.start(index + 1)
            if next_start >= start:  # -1 when the next group didn't participate
                value = value[: next_start - start]
        params.append(value.strip("/"))
    return tuple(params)
