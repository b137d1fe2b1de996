"""Provisioning error taxonomy and its HTTP rendering."""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class ProvisioningError(Exception):
    """Base class for every structured error raised by the services."""

    code = "provisioning_error"
    status_code = status.HTTP_400_BAD_REQUEST
    retryable = False

    def __init__(self, message: str = "", **context: object) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.context = context

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }


# ── Input errors ─────────────────────────────────────────────

class Unauthenticated(ProvisioningError):
    code = "unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED


class PlanNotFound(ProvisioningError):
    code = "plan_not_found"
    status_code = status.HTTP_404_NOT_FOUND


class PlanInactive(ProvisioningError):
    code = "plan_inactive"
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT


class AddOnNotFound(ProvisioningError):
    code = "add_on_not_found"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidSignature(ProvisioningError):
    code = "invalid_signature"
    status_code = status.HTTP_400_BAD_REQUEST


# ── State errors ─────────────────────────────────────────────

class CompanyNotFound(ProvisioningError):
    code = "company_not_found"
    status_code = status.HTTP_404_NOT_FOUND


class PaymentNotFound(ProvisioningError):
    code = "payment_not_found"
    status_code = status.HTTP_404_NOT_FOUND


class PaymentNotPaid(ProvisioningError):
    code = "payment_not_paid"
    status_code = status.HTTP_409_CONFLICT


class InvalidPaymentTransition(ProvisioningError):
    code = "invalid_payment_transition"
    status_code = status.HTTP_409_CONFLICT


class WorkflowRecordMissing(ProvisioningError):
    """Paid payment without staged provisioning data: needs an operator."""

    code = "workflow_record_missing"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


# ── Partial failures ─────────────────────────────────────────

class ProvisioningIncomplete(ProvisioningError):
    code = "provisioning_incomplete"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True

    def __init__(self, message: str = "", *, step: str = "", **context: object) -> None:
        super().__init__(message, step=step, **context)
        self.step = step


async def _handle_provisioning_error(_request: Request, exc: ProvisioningError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


def register_exception_handlers(app: FastAPI) -> None:
    """Render ProvisioningError subclasses as ``{"error": {...}}`` bodies."""
    app.add_exception_handler(ProvisioningError, _handle_provisioning_error)  # type: ignore[arg-type]
