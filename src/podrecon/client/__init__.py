"""Cluster client implementations."""

from podrecon.client.base import ClusterClient

__all__ = ["ClusterClient"]
