"""TripCoin amounts and the currency's fixed parameters."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any

TCC_DECIMALS = 18
DEFAULT_SYSTEM = "TCC"
GENESIS_ADDRESS = "GENESIS_ACCOUNT"

QUARK = 1
PROTON = 10**9
TRIPCOIN = 10**18

INITIAL_SUPPLY = 1_000_000 * TRIPCOIN
BLOCK_REWARD = 2 * TRIPCOIN
MINIMUM_STAKE = 100 * TRIPCOIN
MINIMUM_GAS_PRICE = 1 * PROTON
DEFAULT_GAS_PRICE = 20 * PROTON
DEFAULT_GAS_LIMIT = 21000

CONTRACT_DEPLOYMENT_BASE_COST = 32000
CONTRACT_CALL_BASE_COST = 5000
OPERATION_COST = 100
STORAGE_COST = 200

_DECIMAL = re.compile(r"[+-]?[0-9]+")


class CurrencyError(ValueError):
    """Raised for invalid amounts and failed currency operations."""


def _amount_of(other: Any) -> int | None:
    if isinstance(other, Balance):
        return other.amount
    if isinstance(other, int) and not isinstance(other, bool):
        return other
    raise TypeError(f"unsupported operand type: {type(other).__name__}")


@dataclass(frozen=True, order=True)
class Balance:
    """An amount of TripCoin counted in its smallest unit (quark)."""

    amount: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.amount, int) or isinstance(self.amount, bool):
            raise TypeError("balance amount must be an integer")

    @classmethod
    def from_string(cls, amount: str) -> Balance:
        """Parse a base-10 integer string."""
        if not isinstance(amount, str) or not _DECIMAL.fullmatch(amount):
            raise CurrencyError(f"invalid balance amount: {amount}")
        return cls(int(amount))

    def tripcoin_string(self) -> str:
        """Human-readable amount in whole TCC with trailing zeros dropped."""
        whole, fraction = divmod(self.amount, TRIPCOIN)
        if not fraction:
            return f"{whole} TCC"
        digits = f"{fraction:0{TCC_DECIMALS}d}".rstrip("0")
        return f"{whole}.{digits} TCC"

    def __str__(self) -> str:
        return str(self.amount)

    def __int__(self) -> int:
        return self.amount

    def __bool__(self) -> bool:
        return self.amount != 0

    def __add__(self, other: Balance | int | None) -> Balance:
        if other is None:
            return self
        return Balance(self.amount + _amount_of(other))

    __radd__ = __add__

    def __sub__(self, other: Balance | int | None) -> Balance:
        if other is None:
            return self
        return Balance(self.amount - _amount_of(other))

    def __mul__(self, other: Balance | int | None) -> Balance:
        if other is None:
            return Balance(0)
        return Balance(self.amount * _amount_of(other))

    __rmul__ = __mul__

    def __floordiv__(self, other: Balance | int | None) -> Balance:
        """Euclidean division: the remainder is never negative."""
        divisor = None if other is None else _amount_of(other)
        if not divisor:
            raise ZeroDivisionError("division by zero or nil balance")
        if divisor > 0:
            return Balance(self.amount // divisor)
        return Balance(-(self.amount // -divisor))

    def to_json(self) -> str:
        """Return the JSON value of this amount: a decimal string."""
        return str(self.amount)

    @classmethod
    def from_json(cls, data: Any) -> Balance:
        """Build a balance from its JSON value, which must be a string."""
        if not isinstance(data, str):
            raise CurrencyError(f"balance must be a JSON string, got {type(data).__name__}")
        return cls.from_string(data)


def from_tripcoin(tcc: float) -> Balance:
    """Convert an amount in whole TCC to a balance, truncating toward zero."""
    value = float(tcc)
    if not math.isfinite(value):
        raise CurrencyError(f"invalid TripCoin amount: {tcc}")
    return Balance(int(value * float(TRIPCOIN)))