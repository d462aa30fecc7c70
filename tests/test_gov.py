from datetime import datetime, timedelta, timezone

from stakeindex.dbtypes.coins import DbCoin
from stakeindex.dbtypes.gov import (
    DepositRow,
    GovParamsRow,
    ProposalRow,
    ProposalStakingPoolSnapshotRow,
    ProposalValidatorVotingPowerSnapshotRow,
    TallyResultRow,
    VoteRow,
)

T0 = datetime(2020, 1, 1, tzinfo=timezone.utc)
VOTER = "cosmos1z4hfrxvlgl4s8u4n5ngjcw8kdqrcv43599amxs"


def _proposal(**changes):
    fields = dict(
        proposal_id=1,
        proposal_route="gov",
        proposal_type="TextProposal",
        title="title",
        description="description",
        content="{}",
        submit_time=T0,
        deposit_end_time=T0 + timedelta(days=1),
        voting_start_time=T0 + timedelta(days=2),
        voting_end_time=T0 + timedelta(days=3),
        proposer=VOTER,
        status="PROPOSAL_STATUS_VOTING_PERIOD",
    )
    fields.update(changes)
    return ProposalRow(**fields)


def test_gov_params_row_ignores_one_row_id():
    row = GovParamsRow("{}", "{}", "{}", 10)
    assert row.one_row_id is True
    assert row == GovParamsRow("{}", "{}", "{}", 10, one_row_id=False)


def test_proposal_equality_ignores_content():
    assert _proposal() == _proposal(content='{"other":1}')


def test_proposal_equality_compares_time_instants():
    other_zone = timezone(timedelta(hours=-5))
    assert _proposal() == _proposal(submit_time=T0.astimezone(other_zone))


def test_proposal_differs_on_status_and_times():
    assert _proposal() != _proposal(status="PROPOSAL_STATUS_PASSED")
    assert _proposal() != _proposal(voting_end_time=T0)
    assert _proposal() != _proposal(proposal_id=2)


def test_tally_result_row_equality():
    row = TallyResultRow(1, "10", "0", "5", "0", 10)
    assert row == TallyResultRow(1, "10", "0", "5", "0", 10)
    assert row != TallyResultRow(1, "10", "0", "5", "1", 10)
    assert row != TallyResultRow(1, "10", "0", "5", "0", 11)


def test_vote_row_equality():
    row = VoteRow(1, VOTER, "VOTE_OPTION_YES", 10)
    assert row == VoteRow(1, VOTER, "VOTE_OPTION_YES", 10)
    assert row != VoteRow(1, VOTER, "VOTE_OPTION_NO", 10)


def test_deposit_row_compares_coins_in_order():
    coins = [DbCoin("uatom", "100"), DbCoin("stake", "20")]
    row = DepositRow(1, VOTER, coins, 10)
    assert row == DepositRow(1, VOTER, list(coins), 10)
    assert row != DepositRow(1, VOTER, list(reversed(coins)), 10)
    assert row != DepositRow(1, VOTER, coins[:1], 10)


def test_staking_pool_snapshot_row():
    row = ProposalStakingPoolSnapshotRow(1, 100, 50, 10)
    assert row == ProposalStakingPoolSnapshotRow(1, 100, 50, 10)
    assert row != ProposalStakingPoolSnapshotRow(1, 100, 51, 10)


def test_voting_power_snapshot_row():
    row = ProposalValidatorVotingPowerSnapshotRow(
        1, 1, "cosmosvalcons1qqqqrezrl53hujmpdch6d805ac75n220ku09rl", 1000, 3, False, 10
    )
    assert row.jailed is False
    assert row != ProposalValidatorVotingPowerSnapshotRow(
        1, 1, "cosmosvalcons1qqqqrezrl53hujmpdch6d805ac75n220ku09rl", 1000, 3, True, 10
    )