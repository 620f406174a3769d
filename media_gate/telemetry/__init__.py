"""Audit and telemetry helpers."""

from .access_log import AccessLogEntry, AccessLogger

__all__ = ["AccessLogEntry", "AccessLogger"]
