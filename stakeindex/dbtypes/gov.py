"""Rows of the governance tables."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from stakeindex.dbtypes.coins import DbCoin


@dataclass(frozen=True)
class GovParamsRow:
    """The single row of the gov_params table."""

    deposit_params: str
    voting_params: str
    tally_params: str
    height: int
    one_row_id: bool = field(default=True, compare=False)


@dataclass(frozen=True)
class ProposalRow:
    """A single row of the proposal table; the content is not part of equality."""

    proposal_id: int
    proposal_route: str
    proposal_type: str
    title: str
    description: str
    content: str = field(compare=False)
    submit_time: datetime
    deposit_end_time: datetime
    voting_start_time: datetime
    voting_end_time: datetime
    proposer: str
    status: str


@dataclass(frozen=True)
class TallyResultRow:
    """A single row of the proposal_tally_result table."""

    proposal_id: int
    yes: str
    abstain: str
    no: str
    no_with_veto: str
    height: int


@dataclass(frozen=True)
class VoteRow:
    """A single row of the proposal_vote table."""

    proposal_id: int
    voter: str
    option: str
    height: int


@dataclass
class DepositRow:
    """A single row of the proposal_deposit table."""

    proposal_id: int
    depositor: str
    amount: list[DbCoin]
    height: int


@dataclass(frozen=True)
class ProposalStakingPoolSnapshotRow:
    """The staking pool as it was when a proposal's voting ended."""

    proposal_id: int
    bonded_tokens: int
    not_bonded_tokens: int
    height: int


@dataclass(frozen=True)
class ProposalValidatorVotingPowerSnapshotRow:
    """A validator's voting power as it was when a proposal's voting ended."""

    id: int
    proposal_id: int
    validator_address: str
    voting_power: int
    status: int
    jailed: bool
    height: int