import secrets
import time

INVOICE_NUMBER_PREFIX = "INV-"
INVOICE_NUMBER_WIDTH = 6


def generate_receipt_id() -> str:
    """Receipt string sent to the gateway; unique per order request (max 40 chars)."""
    return f"receipt_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def format_invoice_number(sequence: int) -> str:
    return f"{INVOICE_NUMBER_PREFIX}{str(sequence).zfill(INVOICE_NUMBER_WIDTH)}"
