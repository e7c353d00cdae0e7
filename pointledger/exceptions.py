"""Pointledger exceptions."""


class BaseError(Exception):
    """
    Structured exception with a stable code, a message and extra data.

    Usage:
        try:
            LoyaltyService.adjust_points(customer_id, -500, "Correction", user)
        except LedgerError as e:
            if e.code == "INSUFFICIENT_POINTS":
                show_balance(e.data["available"])
    """

    default_code = "ERROR"
    _default_messages: dict[str, str] = {}

    def __init__(self, code: str | None = None, message: str | None = None, **data):
        self.code = code or self.default_code
        self.message = message or self._default_messages.get(self.code, self.code)
        self.data = data
        super().__init__(f"[{self.code}] {self.message}")

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "data": dict(self.data)}


class LedgerError(BaseError):
    """Base for every error raised by the loyalty services."""

    status_code = 500

    _default_messages = {
        "VALIDATION_FAILED": "Invalid input",
        "POINTS_REQUIRED": "Please provide points and reason",
        "INVALID_POINTS": "Points must be a non-zero integer",
        "REASON_REQUIRED": "A reason is required",
        "INVALID_SETTING": "Invalid loyalty setting",
        "UNKNOWN_SETTING": "Unknown loyalty setting",
        "INVALID_FILTER": "Invalid transaction filter",
        "PROGRAM_DISABLED": "Loyalty program is disabled",
        "BELOW_MINIMUM_REDEMPTION": "Points are below the minimum redemption",
        "CUSTOMER_NOT_FOUND": "Customer not found",
        "INSUFFICIENT_POINTS": "Customer does not have enough points",
        "NOT_AUTHENTICATED": "Not authorized to access this resource",
        "NOT_AUTHORIZED": "Your role is not allowed to perform this action",
        "LEDGER_IMMUTABLE": "Ledger entries cannot be modified or deleted",
        "LEDGER_INCONSISTENT": "Ledger does not reproduce the stored balance",
        "STORAGE_UNAVAILABLE": "Storage unavailable, please retry",
        "STORAGE_TIMEOUT": "Storage operation timed out, please retry",
    }


class ValidationError(LedgerError):
    status_code = 400
    default_code = "VALIDATION_FAILED"


class NotFoundError(LedgerError):
    status_code = 404
    default_code = "CUSTOMER_NOT_FOUND"


class InsufficientBalanceError(LedgerError):
    status_code = 400
    default_code = "INSUFFICIENT_POINTS"


class AuthorizationError(LedgerError):
    status_code = 403
    default_code = "NOT_AUTHORIZED"


class NotAuthenticatedError(AuthorizationError):
    status_code = 401
    default_code = "NOT_AUTHENTICATED"


class LedgerImmutableError(LedgerError):
    status_code = 409
    default_code = "LEDGER_IMMUTABLE"


class StorageError(LedgerError):
    status_code = 500
    default_code = "STORAGE_UNAVAILABLE"
