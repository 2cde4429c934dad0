from fastapi import status


class BillingError(Exception):
    """Base class for billing failures that map onto a transport status."""
    status_code: int = status.HTTP_400_BAD_REQUEST
    retryable: bool = False

    def __init__(self, detail: str, status_code: int = None):
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class UnauthorizedError(BillingError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, detail: str = "User not authenticated"):
        super().__init__(detail)


class InvalidInputError(BillingError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidPlanError(InvalidInputError):
    def __init__(self, detail: str = "Invalid Plan"):
        super().__init__(detail)


class AccessDeniedError(BillingError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, detail: str = "Access denied"):
        super().__init__(detail)


class NotFoundError(BillingError):
    status_code = status.HTTP_404_NOT_FOUND


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str):
        super().__init__(f"No payment found for order {order_id}")
        self.order_id = order_id


class PaymentNotFoundError(NotFoundError):
    def __init__(self, detail: str = "Payment not found"):
        super().__init__(detail)


class SignatureMismatchError(BillingError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, detail: str = "Invalid Signature"):
        super().__init__(detail)


class PaymentConflictError(BillingError):
    """The ledger row has already been settled in a way that contradicts the request."""
    status_code = status.HTTP_409_CONFLICT


class ConfigurationError(BillingError):
    """The service is missing configuration it needs; not the caller's fault."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class GatewayError(BillingError):
    status_code = status.HTTP_502_BAD_GATEWAY
    retryable = True


class PersistenceError(BillingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True
