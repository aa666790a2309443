"""
Bulwark Metrics

Prometheus metrics collection for the resilience layer.
"""

from .prometheus_metrics import BulwarkMetrics

__all__ = ["BulwarkMetrics"]
