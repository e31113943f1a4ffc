"""
Input Validation - Sanitization of user-entered bid values.

Bid inputs arrive as free text (CLI options, form fields). They are
checked here before any wallet prompt or network write:
- Price must be a positive decimal
- Quantity must be a positive whole number that fits the 32-bit
  encrypted input width
- Addresses must be 20-byte hex strings
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Tuple

from dutchbid.crypto import is_valid_address

# =============================================================================
# Constants
# =============================================================================

# Encrypted quantity width (euint32)
MAX_ENCRYPTED_UINT = 2**32 - 1

# On-chain amounts carry 18 decimals
TOKEN_DECIMALS = 18
MAX_DECIMAL_PLACES = TOKEN_DECIMALS


# =============================================================================
# Validation Functions
# =============================================================================


def parse_decimal(value: Any, name: str) -> Tuple[Optional[Decimal], str]:
    """
    Parse a user-entered number into a Decimal.

    Args:
        value: str, int or Decimal input
        name: Field name for error messages

    Returns:
        (parsed_value, error_message); parsed_value is None on error
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None, f"{name} is required"

    if isinstance(value, bool):
        return None, f"{name} must be numeric, got bool"

    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None, f"{name} must be numeric, got {value!r}"

    if not parsed.is_finite():
        return None, f"{name} must be finite"

    return parsed, ""


def validate_price(value: Any) -> Tuple[Optional[Decimal], str]:
    """Validate a bid price (tokens of payment per auctioned token)."""
    price, err = parse_decimal(value, "price")
    if price is None:
        return None, err

    if price <= 0:
        return None, f"price must be > 0, got {price}"

    if -price.as_tuple().exponent > MAX_DECIMAL_PLACES:
        return None, f"price has more than {MAX_DECIMAL_PLACES} decimal places"

    return price, ""


def validate_quantity(value: Any) -> Tuple[Optional[Decimal], str]:
    """Validate a bid quantity (whole tokens, encrypted as uint32)."""
    quantity, err = parse_decimal(value, "quantity")
    if quantity is None:
        return None, err

    if quantity <= 0:
        return None, f"quantity must be > 0, got {quantity}"

    if quantity != quantity.to_integral_value():
        return None, f"quantity must be a whole number, got {quantity}"

    if quantity > MAX_ENCRYPTED_UINT:
        return None, f"quantity must be <= {MAX_ENCRYPTED_UINT}, got {quantity}"

    return quantity, ""


def validate_address(value: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate a 0x-prefixed EVM address."""
    if not isinstance(value, str):
        return False, f"{name} must be str, got {type(value).__name__}"

    if not is_valid_address(value):
        return False, f"{name} is not a valid address: {value!r}"

    return True, ""


def validate_bid_index(value: Any) -> Tuple[bool, str]:
    """Validate a bid index as reported by the settlement contract."""
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"bid index must be int, got {type(value).__name__}"

    if value < 0:
        return False, f"bid index must be >= 0, got {value}"

    return True, ""


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "parse_decimal",
    "validate_price",
    "validate_quantity",
    "validate_address",
    "validate_bid_index",
    "MAX_ENCRYPTED_UINT",
    "TOKEN_DECIMALS",
]
