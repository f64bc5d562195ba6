from fastapi import Request
from fastapi.responses import JSONResponse


class PosError(Exception):
    """Error de dominio: se traduce a {"detail": code} con su status HTTP."""

    status_code = 400
    code = "POS_ERROR"
    message = "Operación no permitida"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class NoActiveSession(PosError):
    status_code = 409
    code = "NO_ACTIVE_SESSION"
    message = "Please start a POS session first"


class SessionAlreadyOpen(PosError):
    status_code = 409
    code = "SESSION_ALREADY_OPEN"
    message = "A POS session is already open"


class CartEmpty(PosError):
    status_code = 409
    code = "CART_EMPTY"
    message = "Cart is empty"


class ProductNotFound(PosError):
    status_code = 404
    code = "PRODUCT_NOT_FOUND"
    message = "Product not found"


class InvalidCashMovement(PosError):
    status_code = 422
    code = "INVALID_CASH_MOVEMENT"
    message = "Cash movement needs a positive amount and a reason"


class InvalidPaymentMethod(PosError):
    status_code = 422
    code = "INVALID_PAYMENT_METHOD"
    message = "Payment method not enabled"


async def pos_error_handler(request: Request, exc: PosError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.code, "message": exc.message},
    )


def install_error_handlers(app):
    app.add_exception_handler(PosError, pos_error_handler)
