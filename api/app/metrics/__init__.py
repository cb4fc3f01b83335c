"""Centralized metrics module for Prometheus instrumentation.

Usage:
    from app.metrics.sync_metrics import sync_total
"""

from app.metrics import sync_metrics

__all__ = ["sync_metrics"]
