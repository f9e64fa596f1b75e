"""Observability: logging for the metrics engine and the broker surface."""

from brokermetrics.observability.logger import get_logger

__all__ = ["get_logger"]
