"""Cluster clients."""

from kubedeploy.client.base import ResourceClient

__all__ = ["ResourceClient"]
