"""
Typed ledger errors.

Every error raised by the contribution and loan services carries a ``kind``
(one of the six categories below), a machine-readable ``code`` and a
human-readable message, so API clients can branch on the code instead of
parsing text (e.g. "wrong app selected" vs "duplicate slip").

    LedgerError (ValueError)
    +-- ValidationFailed            VALIDATION                   400
    +-- RecordNotFound              NOT_FOUND                    404
    +-- DuplicateRecord             DUPLICATE                    409
    +-- StateConflict               STATE_CONFLICT               409
    +-- ExternalDependencyFailure   EXTERNAL_DEPENDENCY_FAILURE  502
    +-- PolicyViolation             POLICY_VIOLATION             422
        +-- MemberNotEligible       (403)
"""
from fastapi import HTTPException


class LedgerError(ValueError):
    """Base class for contribution/loan ledger errors."""

    kind = "LEDGER_ERROR"
    status_code = 400

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "code": self.code, "message": self.message}


class ValidationFailed(LedgerError):
    kind = "VALIDATION"
    status_code = 400


class RecordNotFound(LedgerError):
    kind = "NOT_FOUND"
    status_code = 404

    def __init__(self, what: str):
        super().__init__("NOT_FOUND", f"{what} not found")


class DuplicateRecord(LedgerError):
    kind = "DUPLICATE"
    status_code = 409


class StateConflict(LedgerError):
    kind = "STATE_CONFLICT"
    status_code = 409


class ExternalDependencyFailure(LedgerError):
    kind = "EXTERNAL_DEPENDENCY_FAILURE"
    status_code = 502


class PolicyViolation(LedgerError):
    kind = "POLICY_VIOLATION"
    status_code = 422


class MemberNotEligible(PolicyViolation):
    status_code = 403

    def __init__(self, message: str):
        super().__init__("MEMBER_NOT_ELIGIBLE", message)


def ledger_http_error(exc: LedgerError) -> HTTPException:
    """Translate a ledger error into the HTTPException a router raises."""
    return HTTPException(status_code=exc.status_code, detail=exc.to_dict())
