"""Storage of validators, their descriptions, commissions, powers, statuses and evidence."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, replace
from decimal import Decimal
from itertools import chain
from typing import Any, Iterable, Protocol, Sequence

from stakeindex.dbtypes.coins import format_dec, to_null_string, to_string
from stakeindex.dbtypes.validators import ValidatorData

DO_NOT_MODIFY_DESC = "[do-not-modify]"

MAX_MONIKER_LENGTH = 70
MAX_IDENTITY_LENGTH = 3000
MAX_WEBSITE_LENGTH = 140
MAX_SECURITY_CONTACT_LENGTH = 140
MAX_DETAILS_LENGTH = 280

_SCHEMA = """
CREATE TABLE IF NOT EXISTS account (
    address TEXT NOT NULL PRIMARY KEY
);
CREATE TABLE IF NOT EXISTS validator (
    consensus_address TEXT NOT NULL PRIMARY KEY,
    consensus_pubkey  TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS validator_info (
    consensus_address     TEXT NOT NULL UNIQUE PRIMARY KEY,
    operator_address      TEXT NOT NULL UNIQUE,
    self_delegate_address TEXT,
    max_change_rate       TEXT NOT NULL,
    max_rate              TEXT NOT NULL,
    height                INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS validator_description (
    validator_address TEXT NOT NULL PRIMARY KEY,
    moniker           TEXT,
    identity          TEXT,
    avatar_url        TEXT,
    website           TEXT,
    security_contact  TEXT,
    details           TEXT,
    height            INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS validator_commission (
    validator_address   TEXT NOT NULL PRIMARY KEY,
    commission          TEXT NOT NULL,
    min_self_delegation TEXT NOT NULL,
    height              INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS validator_voting_power (
    validator_address TEXT NOT NULL PRIMARY KEY,
    voting_power      INTEGER NOT NULL,
    height            INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS validator_status (
    validator_address TEXT NOT NULL PRIMARY KEY,
    status            INTEGER NOT NULL,
    jailed            BOOLEAN NOT NULL,
    height            INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS double_sign_vote (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    type              INTEGER NOT NULL,
    height            INTEGER NOT NULL,
    round             INTEGER NOT NULL,
    block_id          TEXT NOT NULL,
    validator_address TEXT NOT NULL,
    validator_index   INTEGER NOT NULL,
    signature         TEXT NOT NULL,
    UNIQUE (block_id, validator_address)
);
CREATE TABLE IF NOT EXISTS double_sign_evidence (
    height    INTEGER NOT NULL,
    vote_a_id INTEGER NOT NULL,
    vote_b_id INTEGER NOT NULL,
    PRIMARY KEY (vote_a_id, vote_b_id)
);
CREATE TABLE IF NOT EXISTS modules (
    module_name TEXT NOT NULL UNIQUE PRIMARY KEY
);
"""


class ValidatorNotFoundError(LookupError):
    """No stored validator matches the requested address."""


class _Validator(Protocol):
    cons_address: str
    cons_pub_key: str
    val_address: str
    self_delegate_address: str
    height: int

    def parsed_max_rate(self) -> Decimal: ...

    def parsed_max_change_rate(self) -> Decimal: ...


def _check_length(name: str, value: str, limit: int) -> None:
    length = len(value.encode())
    if length > limit:
        raise ValueError(f"invalid {name} length; got: {length}, max: {limit}")


@dataclass(frozen=True)
class Description:
    """The public description of a validator."""

    moniker: str = ""
    identity: str = ""
    website: str = ""
    security_contact: str = ""
    details: str = ""

    def ensure_length(self) -> Description:
        """Return this description, raising ValueError if a field is too long."""
        _check_length("moniker", self.moniker, MAX_MONIKER_LENGTH)
        _check_length("identity", self.identity, MAX_IDENTITY_LENGTH)
        _check_length("website", self.website, MAX_WEBSITE_LENGTH)
        _check_length("security contact", self.security_contact, MAX_SECURITY_CONTACT_LENGTH)
        _check_length("details", self.details, MAX_DETAILS_LENGTH)
        return self

    def update(self, other: Description) -> Description:
        """Return ``other`` with its do-not-modify fields taken from this description."""
        merged = {
            name: getattr(self, name) if getattr(other, name) == DO_NOT_MODIFY_DESC else getattr(other, name)
            for name in ("moniker", "identity", "website", "security_contact", "details")
        }
        return replace(other, **merged).ensure_length()


@dataclass(frozen=True)
class ValidatorDescription:
    """A validator description as seen at a given height."""

    operator_address: str
    description: Description
    avatar_url: str
    height: int


@dataclass(frozen=True)
class ValidatorCommission:
    """A validator commission change; None means the value is unchanged."""

    val_address: str
    commission: Decimal | None
    min_self_delegation: int | None
    height: int


@dataclass(frozen=True)
class ValidatorVotingPower:
    """The voting power of a validator at a given height."""

    consensus_address: str
    voting_power: int
    height: int


@dataclass(frozen=True)
class ValidatorStatus:
    """The status and jailing of a validator at a given height."""

    consensus_address: str
    consensus_pub_key: str
    status: int
    jailed: bool
    height: int


@dataclass(frozen=True)
class DoubleSignVote:
    """One of the two conflicting votes of a double sign."""

    type: int
    height: int
    round: int
    block_id: str
    validator_address: str
    validator_index: int
    signature: str


@dataclass(frozen=True)
class DoubleSignEvidence:
    """Evidence that a validator signed two different blocks."""

    height: int
    vote_a: DoubleSignVote
    vote_b: DoubleSignVote


def _values(count: int, width: int) -> str:
    row = "(" + ",".join("?" * width) + ")"
    return ",".join([row] * count)


class ValidatorDatabase:
    """Validator storage over an SQLite connection."""

    def __init__(self, connection: sqlite3.Connection | None = None) -> None:
        self.connection = connection if connection is not None else sqlite3.connect(":memory:")
        self.connection.executescript(_SCHEMA)

    def __enter__(self) -> ValidatorDatabase:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self.connection.close()

    def _execute(self, what: str, stmt: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        try:
            return self.connection.execute(stmt, params)
        except sqlite3.Error as err:
            raise RuntimeError(f"error while {what}: {err}") from err

    # ------------------------------------------------------------------ validators

    def save_validator_data(self, validator: _Validator) -> None:
        """Store a single validator."""
        self.save_validators_data([validator])

    def save_validators_data(self, validators: Sequence[_Validator]) -> None:
        """Store the given validators, keeping the most recent info of each."""
        if not validators:
            return
        count = len(validators)
        accounts = [v.self_delegate_address for v in validators]
        validator_params = list(chain.from_iterable((v.cons_address, v.cons_pub_key) for v in validators))
        info_params = list(
            chain.from_iterable(
                (
                    v.cons_address,
                    v.val_address,
                    v.self_delegate_address,
                    format_dec(v.parsed_max_change_rate()),
                    format_dec(v.parsed_max_rate()),
                    v.height,
                )
                for v in validators
            )
        )

        with self.connection:
            self._execute(
                "storing accounts",
                f"INSERT INTO account (address) VALUES {_values(count, 1)} ON CONFLICT DO NOTHING",
                accounts,
            )
            self._execute(
                "storing validators",
                f"INSERT INTO validator (consensus_address, consensus_pubkey) VALUES {_values(count, 2)} "
                "ON CONFLICT DO NOTHING",
                validator_params,
            )
            self._execute(
                "storing validator infos",
                "INSERT INTO validator_info (consensus_address, operator_address, self_delegate_address, "
                f"max_change_rate, max_rate, height) VALUES {_values(count, 6)} "
                """
ON CONFLICT (consensus_address) DO UPDATE
    SET consensus_address = excluded.consensus_address,
        operator_address = excluded.operator_address,
        self_delegate_address = excluded.self_delegate_address,
        max_change_rate = excluded.max_change_rate,
        max_rate = excluded.max_rate,
        height = excluded.height
WHERE validator_info.height <= excluded.height""",
                info_params,
            )

    def get_validator_consensus_address(self, address: str) -> str:
        """Return the consensus address of the validator with the given operator address."""
        row = self.connection.execute(
            "SELECT consensus_address FROM validator_info WHERE operator_address = ?", (address,)
        ).fetchone()
        if row is None or not row[0]:
            raise ValidatorNotFoundError(
                f"cannot find the consensus address of validator having operator address {address}"
            )
        return row[0]

    def get_validator_operator_address(self, cons_addr: str) -> str:
        """Return the operator address of the validator with the given consensus address."""
        row = self.connection.execute(
            "SELECT operator_address FROM validator_info WHERE consensus_address = ?", (cons_addr,)
        ).fetchone()
        if row is None or not row[0]:
            raise ValidatorNotFoundError(
                f"cannot find the operator address of validator having consensus address {cons_addr}"
            )
        return row[0]

    def _select_validator(self, column: str, value: str) -> ValidatorData | None:
        row = self.connection.execute(
            f"""
SELECT validator.consensus_address,
       validator.consensus_pubkey,
       validator_info.operator_address,
       validator_info.max_change_rate,
       validator_info.max_rate,
       validator_info.self_delegate_address
FROM validator INNER JOIN validator_info ON validator.consensus_address = validator_info.consensus_address
WHERE validator_info.{column} = ?""",
            (value,),
        ).fetchone()
        if row is None:
            return None
        cons_address, pub_key, operator, max_change_rate, max_rate, self_delegate = row
        return ValidatorData(
            cons_address=cons_address,
            val_address=operator,
            cons_pub_key=pub_key,
            self_delegate_address=self_delegate or "",
            max_rate=max_rate,
            max_change_rate=max_change_rate,
            height=0,
        )

    def get_validator(self, val_address: str) -> ValidatorData:
        """Return the validator with the given operator address."""
        validator = self._select_validator("operator_address", val_address)
        if validator is None:
            raise ValidatorNotFoundError(f"no validator with validator address {val_address} could be found")
        return validator

    def get_validators(self) -> list[ValidatorData]:
        """Return every stored validator, ordered by consensus address."""
        rows = self.connection.execute(
            """
SELECT validator.consensus_address,
       validator.consensus_pubkey,
       validator_info.operator_address,
       validator_info.self_delegate_address,
       validator_info.max_rate,
       validator_info.max_change_rate,
       validator_info.height
FROM validator
INNER JOIN validator_info ON validator.consensus_address = validator_info.consensus_address
ORDER BY validator.consensus_address"""
        ).fetchall()
        return [
            ValidatorData(
                cons_address=cons_address,
                val_address=operator,
                cons_pub_key=pub_key,
                self_delegate_address=self_delegate or "",
                max_rate=max_rate,
                max_change_rate=max_change_rate,
                height=height,
            )
            for cons_address, pub_key, operator, self_delegate, max_rate, max_change_rate, height in rows
        ]

    def get_validator_by_self_delegate_address(self, address: str) -> ValidatorData:
        """Return the validator whose self delegate address is the given one."""
        validator = self._select_validator("self_delegate_address", address)
        if validator is None:
            raise ValidatorNotFoundError(f"no validator with self delegate address {address} could be found")
        return validator

    # ---------------------------------------------------------------- descriptions

    def save_validator_description(self, description: ValidatorDescription) -> None:
        """Store a validator description, merging it with the stored one."""
        cons_addr = self.get_validator_consensus_address(description.operator_address)
        des = description.description.ensure_length()

        avatar_url = description.avatar_url
        existing = self._get_validator_description(cons_addr)
        if existing is not None:
            des = existing.description.update(des)
            if description.avatar_url == DO_NOT_MODIFY_DESC:
                avatar_url = existing.avatar_url

        with self.connection:
            self._execute(
                "storing validator description",
                """
INSERT INTO validator_description (
    validator_address, moniker, identity, avatar_url, website, security_contact, details, height
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (validator_address) DO UPDATE
    SET moniker = excluded.moniker,
        identity = excluded.identity,
        avatar_url = excluded.avatar_url,
        website = excluded.website,
        security_contact = excluded.security_contact,
        details = excluded.details,
        height = excluded.height
WHERE validator_description.height <= excluded.height""",
                (
                    to_null_string(cons_addr),
                    to_null_string(des.moniker),
                    to_null_string(des.identity),
                    to_null_string(avatar_url),
                    to_null_string(des.website),
                    to_null_string(des.security_contact),
                    to_null_string(des.details),
                    description.height,
                ),
            )

    def _get_validator_description(self, address: str) -> ValidatorDescription | None:
        try:
            row = self.connection.execute(
                "SELECT validator_address, moniker, identity, avatar_url, website, security_contact, details, "
                "height FROM validator_description WHERE validator_address = ?",
                (address,),
            ).fetchone()
        except sqlite3.Error:
            return None
        if row is None:
            return None
        val_address, moniker, identity, avatar_url, website, security_contact, details, height = row
        return ValidatorDescription(
            operator_address=val_address,
            description=Description(
                moniker=to_string(moniker),
                identity=to_string(identity),
                website=to_string(website),
                security_contact=to_string(security_contact),
                details=to_string(details),
            ),
            avatar_url=to_string(avatar_url),
            height=height,
        )

    # ----------------------------------------------------------------- commissions

    def save_validator_commission(self, data: ValidatorCommission) -> None:
        """Store a validator commission, keeping stored values that are not given."""
        if data.commission is None and data.min_self_delegation is None:
            return

        cons_addr = self.get_validator_consensus_address(data.val_address)

        commission = ""
        min_self_delegation = ""
        existing = self._get_validator_commission(cons_addr)
        if existing is not None:
            commission = existing[0] or ""
            min_self_delegation = existing[1] or ""

        if data.commission is not None:
            commission = format_dec(data.commission)
        if data.min_self_delegation is not None:
            min_self_delegation = str(data.min_self_delegation)

        with self.connection:
            self._execute(
                "storing validator commission",
                """
INSERT INTO validator_commission (validator_address, commission, min_self_delegation, height)
VALUES (?, ?, ?, ?)
ON CONFLICT (validator_address) DO UPDATE
    SET commission = excluded.commission,
        min_self_delegation = excluded.min_self_delegation,
        height = excluded.height
WHERE validator_commission.height <= excluded.height""",
                (cons_addr, commission, min_self_delegation, data.height),
            )

    def _get_validator_commission(self, address: str) -> tuple[str | None, str | None] | None:
        try:
            row = self.connection.execute(
                "SELECT commission, min_self_delegation FROM validator_commission WHERE validator_address = ?",
                (address,),
            ).fetchone()
        except sqlite3.Error:
            return None
        return None if row is None else (row[0], row[1])

    # --------------------------------------------------------------- voting powers

    def save_validators_voting_powers(self, entries: Sequence[ValidatorVotingPower]) -> None:
        """Store the given voting powers, keeping the most recent of each validator."""
        if not entries:
            return
        params = list(chain.from_iterable((e.consensus_address, e.voting_power, e.height) for e in entries))
        with self.connection:
            self._execute(
                "storing validators voting power",
                "INSERT INTO validator_voting_power (validator_address, voting_power, height) "
                f"VALUES {_values(len(entries), 3)}"
                """
ON CONFLICT (validator_address) DO UPDATE
    SET voting_power = excluded.voting_power,
        height = excluded.height
WHERE validator_voting_power.height <= excluded.height""",
                params,
            )

    # -------------------------------------------------------------------- statuses

    def save_validators_statuses(self, statuses: Sequence[ValidatorStatus]) -> None:
        """Store the given statuses, keeping the most recent of each validator."""
        if not statuses:
            return
        count = len(statuses)
        validator_params = list(
            chain.from_iterable((s.consensus_address, s.consensus_pub_key) for s in statuses)
        )
        status_params = list(
            chain.from_iterable((s.consensus_address, s.status, bool(s.jailed), s.height) for s in statuses)
        )
        with self.connection:
            self._execute(
                "storing validators",
                f"INSERT INTO validator (consensus_address, consensus_pubkey) VALUES {_values(count, 2)} "
                "ON CONFLICT DO NOTHING",
                validator_params,
            )
            self._execute(
                "storing validators statuses",
                "INSERT INTO validator_status (validator_address, status, jailed, height) "
                f"VALUES {_values(count, 4)}"
                """
ON CONFLICT (validator_address) DO UPDATE
    SET status = excluded.status,
        jailed = excluded.jailed,
        height = excluded.height
WHERE validator_status.height <= excluded.height""",
                status_params,
            )

    # -------------------------------------------------------------------- evidence

    def _save_double_sign_vote(self, vote: DoubleSignVote) -> int:
        cursor = self._execute(
            "storing double sign vote",
            """
INSERT INTO double_sign_vote
    (type, height, round, block_id, validator_address, validator_index, signature)
VALUES (?, ?, ?, ?, ?, ?, ?) ON CONFLICT DO NOTHING""",
            (
                vote.type,
                vote.height,
                vote.round,
                vote.block_id,
                vote.validator_address,
                vote.validator_index,
                vote.signature,
            ),
        )
        if cursor.rowcount == 0 or cursor.lastrowid is None:
            raise RuntimeError("error while storing double sign vote: no rows in result set")
        return cursor.lastrowid

    def save_double_sign_evidence(self, evidence: DoubleSignEvidence) -> None:
        """Store both votes and the evidence that links them."""
        with self.connection:
            vote_a = self._save_double_sign_vote(evidence.vote_a)
            vote_b = self._save_double_sign_vote(evidence.vote_b)
            self._execute(
                "storing double sign evidence",
                "INSERT INTO double_sign_evidence (height, vote_a_id, vote_b_id) VALUES (?, ?, ?) "
                "ON CONFLICT DO NOTHING",
                (evidence.height, vote_a, vote_b),
            )

    # --------------------------------------------------------------------- modules

    def insert_enable_modules(self, modules: Iterable[str]) -> None:
        """Replace the stored list of enabled modules with the given one."""
        names = list(modules)
        if not names:
            return
        with self.connection:
            self._execute("deleting modules", "DELETE FROM modules WHERE TRUE")
            self._execute(
                "storing modules",
                f"INSERT INTO modules (module_name) VALUES {_values(len(names), 1)} ON CONFLICT DO NOTHING",
                names,
            )