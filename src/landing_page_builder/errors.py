from __future__ import annotations


class PageBuilderError(Exception):
    """Base class for errors raised by the page builder."""


class ConfigurationError(PageBuilderError):
    """Missing or invalid credentials/project. Retrying cannot fix it."""


class TransientGenerationError(PageBuilderError):
    """Network or provider failure that may succeed on retry."""


class ResponseFormatError(TransientGenerationError):
    """The model answered with non-JSON or schema-mismatched output."""


class OperationFailedError(PageBuilderError):
    """A whole operation failed and the user should rephrase the request."""

    def __init__(self, message: str, *, operation: str) -> None:
        self.operation = operation
        super().__init__(message)


class PlanningError(OperationFailedError):
    def __init__(self, message: str) -> None:
        super().__init__(message, operation="planning")


class IdentificationError(OperationFailedError):
    def __init__(self, message: str) -> None:
        super().__init__(message, operation="identification")


class OperationInProgressError(PageBuilderError):
    def __init__(self, requested: str, active: str) -> None:
        self.requested = requested
        self.active = active
        super().__init__(f"Cannot start {requested} while {active} is in progress")


class InvalidTransitionError(PageBuilderError):
    """An action was called in a mode that does not allow it."""


class NoPagePlanError(PageBuilderError):
    """An edit or regeneration was requested before any page was planned."""


class SectionNotFoundError(PageBuilderError, KeyError):
    def __init__(self, section_id: str) -> None:
        self.section_id = section_id
        super().__init__(f"Section not found: {section_id}")

    def __str__(self) -> str:
        return self.args[0]


__all__ = [
    "PageBuilderError",
    "ConfigurationError",
    "TransientGenerationError",
    "ResponseFormatError",
    "OperationFailedError",
    "PlanningError",
    "IdentificationError",
    "OperationInProgressError",
    "InvalidTransitionError",
    "NoPagePlanError",
    "SectionNotFoundError",
]
