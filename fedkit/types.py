"""Core value types: peer ids, amounts, transaction ids and out-points."""

from __future__ import annotations

import enum
import hashlib
import re
from dataclasses import dataclass
from typing import ClassVar, Iterable

from fedkit.codec import U16, U64, FixedBytes, Sha256Hash
from fedkit.derive import consensus_struct

_U16_MAX = (1 << 16) - 1
_U64_MAX = (1 << 64) - 1
_MAX_SATS = 2_100_000_000_000_000
_MAX_AMOUNT_INPUT = 50

_INTEGER = re.compile(r"\+?[0-9]+")
_DECIMAL = re.compile(r"([0-9]*)(?:\.([0-9]*))?")


@consensus_struct(U16)
@dataclass(frozen=True, order=True)
class PeerId:
    """Identifier of a federation member."""

    value: int

    def __post_init__(self) -> None:
        if not isinstance(self.value, int) or isinstance(self.value, bool):
            raise TypeError(f"peer id must be an int, got {type(self.value).__name__}")
        if not 0 <= self.value <= _U16_MAX:
            raise ValueError(f"peer id {self.value} does not fit in u16")

    def to_usize(self) -> int:
        return self.value

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)


class Denomination(enum.Enum):
    """Units in which a bitcoin amount can be written."""

    BITCOIN = "BTC"
    MILLI_BITCOIN = "mBTC"
    MICRO_BITCOIN = "uBTC"
    NANO_BITCOIN = "nBTC"
    PICO_BITCOIN = "pBTC"
    BIT = "bits"
    SATOSHI = "satoshi"
    MILLI_SATOSHI = "msat"

    @property
    def precision(self) -> int:
        """Power of ten that turns one unit of this denomination into satoshi."""
        return _PRECISION[self]


_PRECISION = {
    Denomination.BITCOIN: 8,
    Denomination.MILLI_BITCOIN: 5,
    Denomination.MICRO_BITCOIN: 2,
    Denomination.NANO_BITCOIN: -1,
    Denomination.PICO_BITCOIN: -4,
    Denomination.BIT: 2,
    Denomination.SATOSHI: 0,
    Denomination.MILLI_SATOSHI: -3,
}


class ParseAmountError(ValueError):
    """Raised when text cannot be read as an amount."""


def _parse_bitcoin_amount(text: str, precision: int) -> int:
    """Parse a decimal string in a denomination into whole satoshi."""

    def fail(reason: str) -> ParseAmountError:
        return ParseAmountError(f"Error parsing string as a bitcoin amount: {reason}")

    if len(text) > _MAX_AMOUNT_INPUT:
        raise fail("input string was too large")
    if text.startswith("-"):
        raise fail("amount is negative")
    match = _DECIMAL.fullmatch(text)
    if match is None or not (match[1] or match[2]):
        raise fail("invalid number format")
    whole, fraction = match[1], match[2] or ""
    digits = int(whole + fraction)
    scale = precision - len(fraction)
    if scale >= 0:
        sats = digits * 10**scale
    else:
        sats, remainder = divmod(digits, 10**-scale)
        if remainder:
            raise fail("amount has a too high precision")
    if sats > _U64_MAX:
        raise fail("amount is too big")
    return sats


@consensus_struct(U64)
@dataclass(frozen=True, order=True)
class Amount:
    """An amount of bitcoin in milli-satoshi."""

    milli_sat: int
    ZERO: ClassVar["Amount"]

    def __post_init__(self) -> None:
        if not isinstance(self.milli_sat, int) or isinstance(self.milli_sat, bool):
            raise TypeError(f"amount must be an int, got {type(self.milli_sat).__name__}")
        if not 0 <= self.milli_sat <= _U64_MAX:
            raise OverflowError(f"amount {self.milli_sat} msat is out of range")

    @classmethod
    def from_msat(cls, msat: int) -> "Amount":
        return cls(msat)

    @classmethod
    def from_sat(cls, sat: int) -> "Amount":
        return cls(sat * 1000)

    @classmethod
    def parse(cls, text: str) -> "Amount":
        """Parse a plain integer number of milli-satoshi."""
        if not text:
            raise ParseAmountError(
                "Error parsing string as integer: cannot parse integer from empty string"
            )
        if not _INTEGER.fullmatch(text):
            raise ParseAmountError("Error parsing string as integer: invalid digit found in string")
        value = int(text)
        if value > _U64_MAX:
            raise ParseAmountError(
                "Error parsing string as integer: number too large to fit in target type"
            )
        return cls(value)

    @classmethod
    def from_str_in(cls, text: str, denom: Denomination) -> "Amount":
        """Parse ``text`` written in ``denom``."""
        if denom is Denomination.MILLI_SATOSHI:
            return cls.parse(text)
        sats = _parse_bitcoin_amount(text, denom.precision)
        if sats > _MAX_SATS:
            raise ParseAmountError(
                "Error parsing string as a bitcoin amount: amount exceeds the bitcoin supply"
            )
        return cls.from_sat(sats)

    def saturating_sub(self, other: "Amount") -> "Amount":
        return Amount(max(self.milli_sat - other.milli_sat, 0))

    @classmethod
    def sum(cls, amounts: Iterable["Amount"]) -> "Amount":
        return cls(sum(amount.milli_sat for amount in amounts))

    def __add__(self, other: object) -> "Amount":
        if not isinstance(other, Amount):
            return NotImplemented
        return Amount(self.milli_sat + other.milli_sat)

    def __sub__(self, other: object) -> "Amount":
        if not isinstance(other, Amount):
            return NotImplemented
        return Amount(self.milli_sat - other.milli_sat)

    def __mul__(self, factor: object) -> "Amount":
        if not isinstance(factor, int) or isinstance(factor, bool):
            return NotImplemented
        return Amount(self.milli_sat * factor)

    __rmul__ = __mul__

    def __mod__(self, other: object) -> "Amount":
        if not isinstance(other, Amount):
            return NotImplemented
        return Amount(self.milli_sat % other.milli_sat)

    def __floordiv__(self, other: object) -> int:
        if not isinstance(other, Amount):
            return NotImplemented
        return self.milli_sat // other.milli_sat

    def __str__(self) -> str:
        return f"{self.milli_sat} msat"


Amount.ZERO = Amount(0)


class TransactionId(Sha256Hash):
    """A transaction id for peg-ins, peg-outs and reissuances."""

    @classmethod
    def hash(cls, data: bytes) -> "TransactionId":
        """Return the id obtained by hashing ``data``."""
        return cls(hashlib.sha256(data).digest())


TRANSACTION_ID = FixedBytes(TransactionId.SIZE, TransactionId)


@consensus_struct(TRANSACTION_ID, U64)
@dataclass(frozen=True)
class OutPoint:
    """A reference to one output of a transaction."""

    txid: TransactionId
    out_idx: int

    def __str__(self) -> str:
        return f"{self.txid}:{self.out_idx}"