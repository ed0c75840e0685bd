"""Upstream MLB Stats API access."""

from .client import GumboClient

__all__ = ["GumboClient"]
