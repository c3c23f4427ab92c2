"""
Conversion between integer minor units and decimal presentation strings.

Amounts are integers everywhere inside the service. Decimal strings only
appear at the HTTP edge, with the ledger's 18 fractional digits.
"""
import re
from typing import Union

from medcover.errors import InvalidInput

DECIMALS = 18

_DECIMAL_RE = re.compile(r"^\d+(\.\d+)?$|^\.\d+$")


def format_units(value: int, decimals: int = DECIMALS) -> str:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"Amount must be an integer number of minor units, got {value!r}")
    if value < 0:
        raise InvalidInput("Amount cannot be negative")

    whole, fraction = divmod(value, 10 ** decimals)
    fraction_str = str(fraction).rjust(decimals, "0").rstrip("0") or "0"
    return f"{whole}.{fraction_str}"


def parse_units(text: Union[str, int], decimals: int = DECIMALS) -> int:
    if isinstance(text, bool):
        raise InvalidInput(f"Invalid amount: {text!r}")
    if isinstance(text, int):
        # whole currency units
        if text < 0:
            raise InvalidInput("Amount cannot be negative")
        return text * 10 ** decimals
    if not isinstance(text, str) or not text.strip():
        raise InvalidInput("Amount is required")

    cleaned = text.strip()
    if not _DECIMAL_RE.match(cleaned):
        raise InvalidInput(f"Invalid amount: {text!r}")

    whole, _, fraction = cleaned.partition(".")
    if len(fraction) > decimals:
        raise InvalidInput(f"Amount {text!r} has more than {decimals} fractional digits")

    return int(whole or "0") * 10 ** decimals + int(fraction.ljust(decimals, "0") or "0")
