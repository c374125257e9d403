"""Cluster client contract used by the deployment engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any


class ResourceClient(ABC):
    """Abstract access to a cluster API.

    Implementations return plain dicts for live objects and raise
    ``ResourceNotFoundError`` from ``get`` and ``delete`` when the object
    does not exist.  Any other exception is treated as a transient failure
    by the engine.
    """

    @abstractmethod
    async def apply(self, manifest: Mapping[str, Any]) -> dict[str, Any]:
        """Create or update *manifest* and return the resulting live object."""

    @abstractmethod
    async def get(
        self, kind: str, name: str, namespace: str | None, api_version: str | None = None
    ) -> dict[str, Any]:
        """Return the live object."""

    @abstractmethod
    async def delete(self, kind: str, name: str, namespace: str | None, api_version: str | None = None) -> None:
        """Delete the object."""

    async def close(self) -> None:
        """Release connections.  The default does nothing."""
