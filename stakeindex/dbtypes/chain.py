"""Rows of the genesis, consensus, block, slashing, price feed and staking pool tables."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class GenesisRow:
    """The single row of the genesis table."""

    chain_id: str
    time: datetime
    initial_height: int
    one_row_id: bool = field(default=True, compare=False)


@dataclass(frozen=True)
class ConsensusRow:
    """The single row of the consensus table."""

    height: int
    round: int
    step: str
    one_row_id: bool = field(default=True, compare=False)


@dataclass(frozen=True)
class AverageTimeRow:
    """The average block time over a minute, an hour, a day or since genesis."""

    average_time: float
    height: int
    one_row_id: bool = field(default=True, compare=False)


@dataclass(frozen=True)
class BlockRow:
    """A single block as stored inside the database."""

    height: int
    hash: str
    tx_num: int
    total_gas: int
    proposer_address: str | None
    pre_commits_num: int
    timestamp: datetime


@dataclass(frozen=True)
class ValidatorSigningInfoRow:
    """A single row of the validator_signing_info table."""

    validator_address: str
    start_height: int
    index_offset: int
    jailed_until: datetime
    tombstoned: bool
    missed_blocks_counter: int
    height: int


@dataclass(frozen=True)
class SlashingParamsRow:
    """The single row of the slashing_params table."""

    params: str
    height: int
    one_row_id: bool = field(default=True, compare=False)


@dataclass
class TokenUnitRow:
    """A single row of the token_unit table."""

    token_name: str
    denom: str
    exponent: int
    aliases: list[str] = field(default_factory=list)
    price_id: str | None = None


@dataclass(frozen=True)
class TokenRow:
    """A single row of the token table."""

    name: str
    traded_unit: str


@dataclass(frozen=True)
class TokenPriceRow:
    """A single row of the token_price table."""

    name: str
    price: float
    market_cap: int
    timestamp: datetime
    id: str = field(default="", compare=False)


@dataclass(frozen=True)
class StakingPoolRow:
    """The single row of the staking_pool table."""

    bonded_tokens: int
    not_bonded_tokens: int
    unbonding_tokens: int
    staked_not_bonded_tokens: int
    height: int
    one_row_id: bool = field(default=True, compare=False)