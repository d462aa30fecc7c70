"""Rows of the validator tables."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal

from stakeindex.dbtypes.coins import to_null_string

_INT64_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def _parse_int64(value: str) -> Decimal:
    if not _INT64_RE.fullmatch(value):
        raise ValueError(f"invalid integer rate: {value!r}")
    number = int(value)
    if not _INT64_MIN <= number <= _INT64_MAX:
        raise ValueError(f"integer rate out of range: {value!r}")
    return Decimal(number)


@dataclass(frozen=True)
class ValidatorData:
    """All the stored data of a single validator."""

    cons_address: str
    val_address: str
    cons_pub_key: str
    self_delegate_address: str
    max_rate: str
    max_change_rate: str
    height: int

    def parsed_max_rate(self) -> Decimal:
        """The maximum commission rate, read as a whole number."""
        return _parse_int64(self.max_rate)

    def parsed_max_change_rate(self) -> Decimal:
        """The maximum commission change rate, read as a whole number."""
        return _parse_int64(self.max_change_rate)


@dataclass(frozen=True)
class ValidatorRow:
    """A single row of the validator table."""

    cons_address: str
    cons_pub_key: str


@dataclass(frozen=True)
class ValidatorInfoRow:
    """A single row of the validator_info table."""

    cons_address: str
    val_address: str
    self_delegate_address: str
    max_rate: str
    max_change_rate: str
    height: int


@dataclass(frozen=True)
class ValidatorDescriptionRow:
    """A single row of the validator_description table; the avatar is not part of equality."""

    val_address: str
    moniker: str | None
    identity: str | None
    avatar_url: str | None = field(compare=False)
    website: str | None
    security_contact: str | None
    details: str | None
    height: int

    @classmethod
    def build(
        cls,
        val_address: str,
        moniker: str,
        identity: str,
        avatar_url: str,
        website: str,
        security_contact: str,
        details: str,
        height: int,
    ) -> ValidatorDescriptionRow:
        """Build a row, turning blank texts into NULL."""
        return cls(
            val_address=val_address,
            moniker=to_null_string(moniker),
            identity=to_null_string(identity),
            avatar_url=to_null_string(avatar_url),
            website=to_null_string(website),
            security_contact=to_null_string(security_contact),
            details=to_null_string(details),
            height=height,
        )


@dataclass(frozen=True)
class ValidatorCommissionRow:
    """A single row of the validator_commission table."""

    operator_address: str
    commission: str | None
    min_self_delegation: str | None
    height: int

    @classmethod
    def build(
        cls, operator_address: str, commission: str, min_self_delegation: str, height: int
    ) -> ValidatorCommissionRow:
        """Build a row, turning blank texts into NULL."""
        return cls(
            operator_address=operator_address,
            commission=to_null_string(commission),
            min_self_delegation=to_null_string(min_self_delegation),
            height=height,
        )


@dataclass(frozen=True)
class ValidatorVotingPowerRow:
    """A single row of the validator_voting_power table."""

    validator_address: str
    voting_power: int
    height: int


@dataclass(frozen=True)
class ValidatorStatusRow:
    """A single row of the validator_status table."""

    status: int
    jailed: bool
    cons_address: str
    height: int


@dataclass(frozen=True)
class DoubleSignVoteRow:
    """A single row of the double_sign_vote table."""

    id: int
    vote_type: int
    height: int
    round: int
    block_id: str
    validator_address: str
    validator_index: int
    signature: str


@dataclass(frozen=True)
class DoubleSignEvidenceRow:
    """A single row of the double_sign_evidence table."""

    height: int
    vote_a_id: int
    vote_b_id: int