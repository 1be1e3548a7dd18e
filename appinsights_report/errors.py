"""Errors that end a run.

Everything else (a failed query, a failed alert rule, a failed narrative call)
is folded into that unit's result and never reaches the top level.
"""


class ReporterError(Exception):
    """Base class for fatal run errors."""


class AuthenticationError(ReporterError):
    """Could not obtain credentials for the telemetry backend."""


class ReportWriteError(ReporterError):
    """The rendered report could not be persisted."""
