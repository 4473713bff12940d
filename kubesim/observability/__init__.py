"""Logging and Prometheus metrics for the simulation kernel."""

from kubesim.observability.logging import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
