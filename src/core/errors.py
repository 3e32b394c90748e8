"""Errors raised across the core/adapter boundary."""

from __future__ import annotations


class DeliveryError(RuntimeError):
    """A notification could not be delivered to one destination."""
