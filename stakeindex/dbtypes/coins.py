"""Coin values and the text form they take inside database columns."""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from typing import Iterable

DEC_PRECISION = 18

_DENOM_RE = re.compile(r"[a-zA-Z][a-zA-Z0-9/:._-]{2,127}")
_INT_RE = re.compile(r"-?[0-9]+")
_QUANTUM = Decimal(1).scaleb(-DEC_PRECISION)


def format_dec(value: Decimal | int | str) -> str:
    """Render a decimal with exactly eighteen fractional digits."""
    try:
        dec = value if isinstance(value, Decimal) else Decimal(value)
    except InvalidOperation as err:
        raise ValueError(f"invalid decimal: {value!r}") from err
    if not dec.is_finite():
        raise ValueError(f"invalid decimal: {value!r}")
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, dec.adjusted() + DEC_PRECISION + 2)
        quantized = dec.quantize(_QUANTUM)
    if quantized == 0:
        quantized = abs(quantized)
    return format(quantized, "f")


def to_string(value: str | None) -> str:
    """Return the stored text, or an empty string for NULL."""
    return value if value is not None else ""


def to_null_string(value: str) -> str | None:
    """Trim the text and turn an empty result into NULL."""
    value = value.strip()
    return value or None


def remove_empty(values: Iterable[str]) -> list[str]:
    """Drop the empty strings from the given values."""
    return [value for value in values if value != ""]


def _validate(denom: str, amount: int | Decimal) -> None:
    if not _DENOM_RE.fullmatch(denom):
        raise ValueError(f"invalid denom: {denom}")
    if amount < 0:
        raise ValueError(f"negative coin amount: {amount}")


def _to_text(src: bytes | str) -> str:
    if isinstance(src, (bytes, bytearray, memoryview)):
        return bytes(src).decode()
    if isinstance(src, str):
        return src
    raise TypeError(f"cannot read a coin from {type(src).__name__}")


def _parse_single(src: bytes | str) -> tuple[str, str]:
    text = _to_text(src)
    for char in '"{}()':
        text = text.replace(char, "")
    values = text.split(",")
    if len(values) < 2:
        raise ValueError(f"invalid coin value: {src!r}")
    return values[0], values[1]


def _parse_many(src: bytes | str) -> list[tuple[str, str]]:
    text = _to_text(src)
    for char in '"{}':
        text = text.replace(char, "")
    text = text.replace("),(", ") (")
    for char in "()":
        text = text.replace(char, "")
    pairs = []
    for item in remove_empty(text.split(" ")):
        values = item.split(",")
        if len(values) < 2:
            raise ValueError(f"invalid coin value: {item!r}")
        pairs.append((values[0], values[1]))
    return pairs


@dataclass(frozen=True)
class Coin:
    """An integer amount of a single denomination."""

    denom: str
    amount: int


@dataclass(frozen=True)
class DecCoin:
    """A decimal amount of a single denomination."""

    denom: str
    amount: Decimal


@dataclass(frozen=True)
class DbCoin:
    """A coin as stored inside the database."""

    denom: str
    amount: str

    @classmethod
    def from_coin(cls, coin: Coin) -> DbCoin:
        return cls(denom=coin.denom, amount=str(coin.amount))

    @classmethod
    def parse(cls, src: bytes | str) -> DbCoin:
        """Read a coin from its composite column text, e.g. ``(uatom,100)``."""
        denom, amount = _parse_single(src)
        return cls(denom=denom, amount=amount)

    def value(self) -> str:
        """Return the composite column text for this coin."""
        return f"({self.denom},{self.amount})"

    def to_coin(self) -> Coin:
        if not _INT_RE.fullmatch(self.amount):
            raise ValueError(f"invalid coin amount: {self.amount!r}")
        amount = int(self.amount)
        _validate(self.denom, amount)
        return Coin(denom=self.denom, amount=amount)


@dataclass(frozen=True)
class DbDecCoin:
    """A decimal coin as stored inside the database."""

    denom: str
    amount: str

    @classmethod
    def from_dec_coin(cls, coin: DecCoin) -> DbDecCoin:
        return cls(denom=coin.denom, amount=format_dec(coin.amount))

    @classmethod
    def parse(cls, src: bytes | str) -> DbDecCoin:
        """Read a decimal coin from its composite column text."""
        denom, amount = _parse_single(src)
        return cls(denom=denom, amount=amount)

    def value(self) -> str:
        """Return the composite column text for this coin."""
        return f"({self.denom},{self.amount})"

    def to_dec_coin(self) -> DecCoin:
        try:
            amount = Decimal(self.amount)
        except InvalidOperation as err:
            raise ValueError(f"invalid decimal amount: {self.amount!r}") from err
        if not amount.is_finite() or amount.as_tuple().exponent < -DEC_PRECISION:
            raise ValueError(f"invalid decimal amount: {self.amount!r}")
        _validate(self.denom, amount)
        return DecCoin(denom=self.denom, amount=amount)


def db_coins_from_coins(coins: Iterable[Coin]) -> list[DbCoin]:
    return [DbCoin.from_coin(coin) for coin in coins]


def parse_db_coins(src: bytes | str) -> list[DbCoin]:
    """Read an array of coins, e.g. ``{"(uatom,100)","(stake,20)"}``."""
    return [DbCoin(denom=denom, amount=amount) for denom, amount in _parse_many(src)]


def db_coins_to_coins(coins: Iterable[DbCoin]) -> list[Coin]:
    return [coin.to_coin() for coin in coins]


def db_dec_coins_from_dec_coins(coins: Iterable[DecCoin]) -> list[DbDecCoin]:
    return [DbDecCoin.from_dec_coin(coin) for coin in coins]


def parse_db_dec_coins(src: bytes | str) -> list[DbDecCoin]:
    """Read an array of decimal coins from its column text."""
    return [DbDecCoin(denom=denom, amount=amount) for denom, amount in _parse_many(src)]


def db_dec_coins_to_dec_coins(coins: Iterable[DbDecCoin]) -> list[DecCoin]:
    return [coin.to_dec_coin() for coin in coins]