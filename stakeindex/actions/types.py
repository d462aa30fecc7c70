"""Payloads, responses and the execution context of the actions service."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Iterable, Mapping, Protocol

from stakeindex.dbtypes.coins import Coin, DecCoin, format_dec

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_UINT64_MAX = 2**64 - 1


def _read_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"invalid payload: {key} must be a string")
    return value


def _read_int(data: Mapping[str, Any], key: str, low: int, high: int) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise ValueError(f"invalid payload: {key} must be an integer between {low} and {high}")
    return value


def _read_bool(data: Mapping[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValueError(f"invalid payload: {key} must be a boolean")
    return value


@dataclass(frozen=True)
class PayloadArgs:
    """The input arguments of an action call."""

    address: str = ""
    height: int = 0
    offset: int = 0
    limit: int = 0
    count_total: bool = False


@dataclass(frozen=True)
class PageRequest:
    """Pagination of a query."""

    key: bytes = b""
    offset: int = 0
    limit: int = 0
    count_total: bool = False


@dataclass
class Payload:
    """The body of an action call."""

    session_variables: dict[str, Any] = field(default_factory=dict)
    input: PayloadArgs = field(default_factory=PayloadArgs)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Payload:
        """Build a payload from decoded JSON; raise ValueError on a wrong shape."""
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError("invalid payload: expected an object")

        session = data.get("session_variables")
        if session is None:
            session = {}
        elif not isinstance(session, Mapping):
            raise ValueError("invalid payload: session_variables must be an object")

        raw_input = data.get("input")
        if raw_input is None:
            raw_input = {}
        elif not isinstance(raw_input, Mapping):
            raise ValueError("invalid payload: input must be an object")

        args = PayloadArgs(
            address=_read_str(raw_input, "address"),
            height=_read_int(raw_input, "height", _INT64_MIN, _INT64_MAX),
            offset=_read_int(raw_input, "offset", 0, _UINT64_MAX),
            limit=_read_int(raw_input, "limit", 0, _UINT64_MAX),
            count_total=_read_bool(raw_input, "count_total"),
        )
        return cls(session_variables=dict(session), input=args)

    def address(self) -> str:
        """The address the call is about, if any."""
        return self.input.address

    def pagination(self) -> PageRequest:
        """The pagination requested by the call."""
        return PageRequest(
            offset=self.input.offset,
            limit=self.input.limit,
            count_total=self.input.count_total,
        )


@dataclass(frozen=True)
class ActionCoin:
    """A coin as returned by an action."""

    amount: str
    denom: str


def convert_coins(coins: Iterable[Coin]) -> list[ActionCoin]:
    """Turn integer coins into action coins."""
    return [ActionCoin(amount=str(coin.amount), denom=coin.denom) for coin in coins]


def convert_dec_coins(coins: Iterable[DecCoin]) -> list[ActionCoin]:
    """Turn decimal coins into action coins with eighteen fractional digits."""
    return [ActionCoin(amount=format_dec(coin.amount), denom=coin.denom) for coin in coins]


@dataclass(frozen=True)
class Address:
    address: str


@dataclass(frozen=True)
class Balance:
    coins: list[ActionCoin]


@dataclass(frozen=True)
class Delegation:
    delegator_address: str
    validator_address: str
    coins: list[ActionCoin]


@dataclass(frozen=True)
class DelegationResponse:
    delegations: list[Delegation]
    pagination: Any = None


@dataclass(frozen=True)
class DelegationReward:
    coins: list[ActionCoin]
    validator_address: str


@dataclass(frozen=True)
class ValidatorCommissionAmount:
    coins: list[ActionCoin]


@dataclass(frozen=True)
class UnbondingDelegation:
    delegator_address: str
    validator_address: str
    entries: list[Any]


@dataclass(frozen=True)
class UnbondingDelegationResponse:
    unbonding_delegations: list[UnbondingDelegation]
    pagination: Any = None


@dataclass(frozen=True)
class RedelegationEntry:
    completion_time: datetime
    balance: int = field(metadata={"as_string": True})


@dataclass(frozen=True)
class Redelegation:
    delegator_address: str
    validator_src_address: str
    validator_dst_address: str
    entries: list[RedelegationEntry] = field(default_factory=list)


@dataclass(frozen=True)
class RedelegationResponse:
    redelegations: list[Redelegation]
    pagination: Any = None


@dataclass(frozen=True)
class GraphQLError:
    message: str


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return text + "Z"
    total = int(offset.total_seconds())
    sign = "+" if total >= 0 else "-"
    total = abs(total)
    return f"{text}{sign}{total // 3600:02d}:{total % 3600 // 60:02d}"


def to_json_value(value: Any) -> Any:
    """Turn a response into plain values ready for JSON encoding."""
    if value is None or isinstance(value, (bool, str, int, float)):
        return value
    if isinstance(value, Decimal):
        return format_dec(value)
    if isinstance(value, datetime):
        return _format_time(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if is_dataclass(value) and not isinstance(value, type):
        result = {}
        for item in fields(value):
            attr = getattr(value, item.name)
            if item.metadata.get("as_string") and attr is not None:
                result[item.name] = str(attr)
            else:
                result[item.name] = to_json_value(attr)
        return result
    if isinstance(value, Mapping):
        return {str(key): to_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_value(item) for item in value]
    raise TypeError(f"cannot encode {type(value).__name__} as JSON")


class _Node(Protocol):
    def latest_height(self) -> int: ...


@dataclass
class ActionContext:
    """What action handlers work with: the node and the data sources."""

    node: _Node
    sources: Any = None

    def get_height(self, payload: Payload | None) -> int:
        """The requested height, or the latest one when none is given."""
        if payload is None or payload.input.height == 0:
            try:
                return self.node.latest_height()
            except Exception as err:
                raise RuntimeError(f"error while getting chain latest block height: {err}") from err
        return payload.input.height