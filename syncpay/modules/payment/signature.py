import hashlib
import hmac

from syncpay.core.exceptions import ConfigurationError, InvalidInputError


def compute_signature(order_id: str, payment_id: str, secret: str) -> str:
    """Lowercase hex HMAC-SHA256 of ``order_id|payment_id`` keyed with the gateway secret."""
    message = f"{order_id}|{payment_id}"
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """
    Checks a gateway callback signature.

    A wrong, empty or malformed signature returns False. Missing (None) or
    non-string arguments raise InvalidInputError; an empty secret raises
    ConfigurationError.
    """
    for name, value in (
        ("order_id", order_id),
        ("payment_id", payment_id),
        ("signature", signature),
        ("secret", secret),
    ):
        if value is None or not isinstance(value, str):
            raise InvalidInputError(f"{name} is required")
    if not secret:
        raise ConfigurationError("Payment gateway is not configured")
    if not order_id or not payment_id or not signature:
        return False

    expected = compute_signature(order_id, payment_id, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
