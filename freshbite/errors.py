"""Exceptions raised by FreshBite services and how they map to API responses."""
from flask import jsonify
from werkzeug.exceptions import HTTPException

from .utils.api import api_error
from .utils.logger import get_logger

log = get_logger("errors")


class FreshBiteError(Exception):
    """Base exception for all business-rule failures."""

    status_code = 400
    reason = "error"

    def __init__(self, message: str, **data):
        self.message = message
        self.data = data
        super().__init__(message)

    def as_api(self):
        return api_error(self.message, {"reason": self.reason, **self.data})


class ValidationError(FreshBiteError):
    """Malformed input: missing fields, bad quantity, unknown status..."""

    reason = "validation"


class InvalidTransitionError(ValidationError):
    """Raised when an order status change breaks the workflow."""

    reason = "invalid_transition"

    def __init__(self, current: str, target: str, message: str | None = None):
        self.current = current
        self.target = target
        super().__init__(
            message or f"cannot move order from {current} to {target}",
            current=current,
            target=target,
        )


class NotFoundError(FreshBiteError):
    """Referenced product/combo/voucher/order/... does not exist."""

    status_code = 404
    reason = "not_found"


class InactiveItemError(FreshBiteError):
    """Item exists but is currently disabled for sale."""

    status_code = 409
    reason = "inactive_item"


class ForbiddenError(FreshBiteError):
    """Actor lacks permission for the requested mutation."""

    status_code = 403
    reason = "forbidden"


class ConflictError(FreshBiteError):
    """Entity is referenced by dependent records or already exists."""

    status_code = 409
    reason = "conflict"


class AuthError(FreshBiteError):
    """Bad credentials or an invalid/expired refresh token."""

    status_code = 401
    reason = "unauthorized"


# ---- voucher eligibility ----------------------------------------------------

class EligibilityError(FreshBiteError):
    """Base for every voucher rejection; `reason` tells the caller which one."""

    reason = "ineligible"


class GuestNotAllowedError(EligibilityError):
    status_code = 401
    reason = "guest_not_allowed"

    def __init__(self):
        super().__init__("login required to use vouchers")


class VoucherNotEntitledError(EligibilityError):
    reason = "not_entitled"

    def __init__(self, code: str):
        self.code = code
        super().__init__("not entitled to this voucher", code=code)


class VoucherDisabledError(EligibilityError):
    reason = "disabled"

    def __init__(self, code: str):
        self.code = code
        super().__init__("voucher disabled", code=code)


class VoucherNotYetValidError(EligibilityError):
    reason = "not_yet_valid"

    def __init__(self, code: str, valid_from):
        self.code = code
        self.valid_from = valid_from
        super().__init__("voucher is not yet valid", code=code, valid_from=valid_from.isoformat())


class VoucherExpiredError(EligibilityError):
    reason = "expired"

    def __init__(self, code: str, valid_to):
        self.code = code
        self.valid_to = valid_to
        super().__init__("voucher expired", code=code, valid_to=valid_to.isoformat())


class BelowMinimumError(EligibilityError):
    """Subtotal under a minimum: a voucher's or the shop-wide order floor."""

    reason = "below_minimum"

    def __init__(self, minimum, message: str = "order below minimum"):
        self.minimum = minimum
        super().__init__(message, minimum=float(minimum))


class UsageExhaustedError(EligibilityError):
    reason = "usage_exhausted"

    def __init__(self, code: str):
        self.code = code
        super().__init__("voucher usage limit exhausted", code=code)


class PersonalLimitExhaustedError(EligibilityError):
    reason = "personal_limit_exhausted"

    def __init__(self, code: str):
        self.code = code
        super().__init__("personal usage limit exhausted", code=code)


# ---- flask wiring -----------------------------------------------------------

def register_error_handlers(app):
    @app.errorhandler(FreshBiteError)
    def handle_business_error(e: FreshBiteError):
        log.warning("%s rejected: %s (%s)", e.__class__.__name__, e.message, e.reason)
        r = jsonify(e.as_api())
        r.status_code = e.status_code
        return r

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        r = jsonify(api_error(e.description or e.name))
        r.status_code = e.code or 500
        return r

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        log.exception("unhandled error: %s", e)
        r = jsonify(api_error("internal server error"))
        r.status_code = 500
        return r
