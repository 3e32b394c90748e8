"""Adapters for the Steam SDK and notification destinations.

Adapters implement the ports in ``core.ports`` and keep SDK and HTTP details
out of the core.
"""
