"""Cinder tenant utilization collector."""

__version__ = "0.3.0"
