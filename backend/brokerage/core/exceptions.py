"""Error taxonomy for the commission engine.

Services raise these unmodified; the HTTP layer in ``brokerage.main`` maps
them to status codes. Errors flagged ``data_integrity`` point at systemic
problems (corrupt recruiter graph, broken tier configuration) rather than a
single bad submission and are surfaced to admins as such.
"""
from typing import List, Optional


class CommissionEngineError(Exception):
    status_code = 400
    error_type = "commission_error"
    data_integrity = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CommissionEngineError):
    status_code = 422
    error_type = "validation_error"

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]


class NotFoundError(CommissionEngineError):
    status_code = 404
    error_type = "not_found"


class InvalidTransitionError(CommissionEngineError):
    status_code = 409
    error_type = "invalid_transition"

    def __init__(self, current_status: str, target_status: str, message: Optional[str] = None):
        super().__init__(message or f"Cannot move transaction from '{current_status}' to '{target_status}'")
        self.current_status = current_status
        self.target_status = target_status


class AlreadyProcessedError(CommissionEngineError):
    status_code = 409
    error_type = "already_processed"


class ApprovalInProgressError(CommissionEngineError):
    status_code = 409
    error_type = "approval_in_progress"


class CycleDetectedError(CommissionEngineError):
    status_code = 500
    error_type = "data_integrity"
    data_integrity = True

    def __init__(self, message: str, chain: Optional[List[int]] = None):
        super().__init__(message)
        self.chain = chain or []


class ConfigurationError(CommissionEngineError):
    status_code = 500
    error_type = "data_integrity"
    data_integrity = True
