"""Field path parsing and lookup.

Supported syntax::

    status.loadBalancer.ingress[0].ip
    metadata.annotations["example.com/owner"]
    data['key.with.dots']
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from functools import lru_cache
from typing import Any

_TOKEN = re.compile(
    r"""
      (?P<dot>\.)?(?P<name>[^.\[\]"']+)        # .name
    | \[(?P<index>\d+)\]                        # [0]
    | \[(?P<dq>"(?:[^"\\]|\\.)*")\]             # ["key"]
    | \['(?P<sq>[^']*)'\]                       # ['key']
    """,
    re.VERBOSE,
)


@lru_cache(maxsize=1024)
def parse_path(path: str) -> tuple[str | int, ...]:
    """Split *path* into dict keys (str) and list indexes (int).

    Raises:
        ValueError: if the path is empty or malformed.
    """
    if not path:
        raise ValueError("Field path must not be empty")
    segments: list[str | int] = []
    pos = 0
    while pos < len(path):
        match = _TOKEN.match(path, pos)
        if match is None:
            raise ValueError(f"Malformed field path {path!r} at offset {pos}")
        if match.group("name") is not None:
            has_dot = match.group("dot") is not None
            if has_dot == (pos == 0):
                raise ValueError(f"Malformed field path {path!r} at offset {pos}")
            segments.append(match.group("name"))
        elif match.group("index") is not None:
            segments.append(int(match.group("index")))
        elif match.group("dq") is not None:
            segments.append(json.loads(match.group("dq")))
        else:
            segments.append(match.group("sq"))
        pos = match.end()
    return tuple(segments)


def read_path(obj: Any, path: str) -> Any:
    """Return the value at *path* inside *obj*.

    A key that exists with a ``None`` value returns ``None``.

    Raises:
        LookupError: if any segment is absent or the shape does not match.
    """
    current = obj
    walked = ""
    for segment in parse_path(path):
        if isinstance(segment, int):
            if isinstance(current, Sequence) and not isinstance(current, str):
                if segment >= len(current):
                    raise LookupError(f"index {segment} out of range at '{walked or '<root>'}'")
                current = current[segment]
                walked = f"{walked}[{segment}]"
                continue
            raise LookupError(f"cannot index non-list at '{walked or '<root>'}'")
        if not isinstance(current, Mapping):
            raise LookupError(f"cannot read '{segment}' from non-object at '{walked or '<root>'}'")
        if segment not in current:
            raise LookupError(f"field '{segment}' not present at '{walked or '<root>'}'")
        current = current[segment]
        walked = f"{walked}.{segment}" if walked else segment
    return current


def root_segment(path: str) -> str | int:
    return parse_path(path)[0]
