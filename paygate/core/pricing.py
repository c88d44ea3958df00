"""
Fee amounts and payment identifiers.

Handles the fixed one-time usage fee and the normalisation of values
that arrive from the payment rail.
"""

import re
from decimal import Decimal
from typing import Union

# 0.01 of an 18-decimal native token, expressed in wei
WEI_PER_TOKEN = 10 ** 18
ONE_TIME_USAGE_FEE_WEI = 10 ** 16

_HASH_PATTERN = re.compile(r"^0x[0-9a-f]+$")


def parse_amount(value: Union[int, str]) -> int:
    """Parse a payment amount in wei.

    The payment rail reports amounts as decimal digit strings; integers
    are accepted as well. Floats are refused since they cannot represent
    wei exactly.

    Args:
        value: Amount as int or decimal digit string

    Returns:
        Amount in wei

    Raises:
        ValueError: If the value is not a non-negative integer amount
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str) and value.strip().isdigit():
        amount = int(value.strip())
    else:
        raise ValueError(f"Invalid amount: {value!r}")

    if amount < 0:
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


def format_amount(wei: int) -> str:
    """Render a wei amount as a token amount, e.g. 10**16 -> '0.01'."""
    tokens = Decimal(wei) / Decimal(WEI_PER_TOKEN)
    return format(tokens.normalize(), "f")


def normalize_transaction_hash(transaction_hash: str) -> str:
    """Normalise a transaction hash so equal payments compare equal.

    Args:
        transaction_hash: 0x-prefixed hex hash in any letter case

    Returns:
        Lower-cased, stripped hash

    Raises:
        ValueError: If the hash is missing or not 0x-prefixed hex
    """
    if not transaction_hash or not str(transaction_hash).strip():
        raise ValueError("transaction_hash is required and cannot be empty")

    normalized = str(transaction_hash).strip().lower()
    if not _HASH_PATTERN.match(normalized):
        raise ValueError(f"Malformed transaction hash: {transaction_hash!r}")
    return normalized
