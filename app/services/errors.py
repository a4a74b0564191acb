from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(eq=False)
class LoanWorkflowError(Exception):
    code: str
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message


class PersistenceFailure(LoanWorkflowError):
    """The store was unreachable or rejected a write. Never means "stale"."""


class InvalidVerificationType(LoanWorkflowError, ValueError):
    pass


class InvalidVerificationPayload(LoanWorkflowError, ValueError):
    pass


class ApplicationNotFound(LoanWorkflowError):
    pass


class DuplicateApplication(LoanWorkflowError):
    pass


class StaleTransition(LoanWorkflowError):
    """Raised by workflow helpers that lost the compare-and-swap race.

    ``stage_transitions.transition`` itself reports this as ``False``.
    """


class VerificationGateClosed(LoanWorkflowError):
    pass


class InvalidStageTransition(LoanWorkflowError, ValueError):
    pass


class SanctionExists(LoanWorkflowError):
    pass


class SanctionNotFound(LoanWorkflowError):
    pass


class DisbursementExists(LoanWorkflowError):
    pass


class DisbursementNotFound(LoanWorkflowError):
    pass


class DisbursementNotReady(LoanWorkflowError):
    pass


class InvalidDisbursementState(LoanWorkflowError, ValueError):
    pass


STALE_TRANSITION_MESSAGE = "This application was just updated. Refresh and try again."


def stale_transition(application_id, expected_stage: str) -> StaleTransition:
    return StaleTransition(
        code="stale_transition",
        message=STALE_TRANSITION_MESSAGE,
        details={"application_id": str(application_id), "expected_stage": expected_stage},
    )


def application_not_found(application_id) -> ApplicationNotFound:
    return ApplicationNotFound(
        code="application_not_found",
        message="Loan application not found",
        details={"application_id": str(application_id)},
    )
