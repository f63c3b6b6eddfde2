"""Error taxonomy for the plot engine.

Transport failures, business-rule rejections and applicant input failures
are distinct classes so callers can show distinguishable messages for
"cannot reach source", "no data available" and "operation rejected".
"""

from __future__ import annotations


class PlotSyncError(Exception):
    """Base class for all plotsync errors."""

    user_message = "An unexpected error occurred. Please try again."


# -- Transport ---------------------------------------------------------------


class TransportError(PlotSyncError):
    """The remote source could not be reached or answered unusably."""

    user_message = "Cannot reach the land plot server. Please try again."


class SourceUnavailableError(TransportError):
    """Connection refused, timed out, failed health gate, or a 5xx answer."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidResponseError(TransportError):
    """The source answered with a body that is not the expected format."""


class RefreshFailedError(TransportError):
    """A refresh exhausted its retries. Always chained to the last cause."""

    def __init__(self, message: str, *, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


# -- Data --------------------------------------------------------------------


class RecordValidationError(PlotSyncError):
    """A single raw record or geometry was rejected.

    Never raised out of batch operations; instances are collected as
    diagnostics so the rest of the batch stays usable.
    """

    def __init__(self, message: str, *, index: int | None = None, record_id: str | None = None) -> None:
        super().__init__(message)
        self.index = index
        self.record_id = record_id


class NoPlotsAvailableError(PlotSyncError):
    """The source is reachable but holds no plots."""

    user_message = "No land plots available."


# -- Business rules ----------------------------------------------------------


class BusinessRuleError(PlotSyncError):
    """An operation was rejected by a domain rule. Never retried."""

    user_message = "The operation was rejected."

    @property
    def detail(self) -> str:
        return str(self)


class PlotNotFoundError(BusinessRuleError):
    def __init__(self, plot_id: str) -> None:
        super().__init__(f"Plot {plot_id!r} not found")
        self.plot_id = plot_id


class PlotNotAvailableError(BusinessRuleError):
    def __init__(self, plot_id: str, status: str) -> None:
        super().__init__(
            f"Plot {plot_id!r} is not available for ordering. Current status: {status}"
        )
        self.plot_id = plot_id
        self.status = status


class ReservationInFlightError(BusinessRuleError):
    def __init__(self, plot_id: str) -> None:
        super().__init__(f"A reservation for plot {plot_id!r} is already in progress")
        self.plot_id = plot_id


class OrderRejectedError(BusinessRuleError):
    """The remote source refused the order (4xx answer)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


# -- Applicant input ---------------------------------------------------------


class ApplicantValidationError(PlotSyncError):
    """Applicant fields failed validation before any network effect."""

    user_message = "Please correct the highlighted fields."

    def __init__(self, errors: dict[str, str]) -> None:
        joined = "; ".join(f"{field}: {msg}" for field, msg in errors.items())
        super().__init__(f"Invalid applicant details: {joined}")
        self.errors = errors
