from decimal import Decimal

import pytest

from stakeindex.database.validators import (
    DO_NOT_MODIFY_DESC,
    Description,
    DoubleSignEvidence,
    DoubleSignVote,
    ValidatorCommission,
    ValidatorDatabase,
    ValidatorDescription,
    ValidatorNotFoundError,
    ValidatorStatus,
    ValidatorVotingPower,
)
from stakeindex.dbtypes.common import ModuleRow, new_module_rows
from stakeindex.dbtypes.validators import (
    DoubleSignEvidenceRow,
    DoubleSignVoteRow,
    ValidatorCommissionRow,
    ValidatorData,
    ValidatorDescriptionRow,
    ValidatorInfoRow,
    ValidatorRow,
    ValidatorStatusRow,
    ValidatorVotingPowerRow,
)

CONS_A = "cosmosvalcons1zzzexamplevalidatora"
OPER_A = "cosmosvaloper1examplevalidatora"
PUB_A = "cosmosvalconspub1examplepubkeya"
SELF_A = "cosmos1exampledelegatora"

CONS_B = "cosmosvalcons1aaaexamplevalidatorb"
OPER_B = "cosmosvaloper1examplevalidatorb"
PUB_B = "cosmosvalconspub1examplepubkeyb"
SELF_B = "cosmos1exampledelegatorb"

ONE = "1.000000000000000000"
TWO = "2.000000000000000000"


@pytest.fixture
def db():
    with ValidatorDatabase() as database:
        yield database


def _add_validator(db, cons, oper, pub, self_delegate=SELF_A):
    validator = ValidatorData(cons, oper, pub, self_delegate, "1", "2", 1)
    db.save_validator_data(validator)
    return validator


def _validator_rows(db):
    rows = db.connection.execute(
        "SELECT consensus_address, consensus_pubkey FROM validator ORDER BY rowid"
    ).fetchall()
    return [ValidatorRow(*row) for row in rows]


def _info_rows(db):
    rows = db.connection.execute(
        "SELECT consensus_address, operator_address, self_delegate_address, max_rate, max_change_rate, height "
        "FROM validator_info ORDER BY rowid"
    ).fetchall()
    return [ValidatorInfoRow(*row) for row in rows]


def _description_rows(db):
    rows = db.connection.execute(
        "SELECT validator_address, moniker, identity, avatar_url, website, security_contact, details, height "
        "FROM validator_description ORDER BY rowid"
    ).fetchall()
    return [ValidatorDescriptionRow(*row) for row in rows]


def _commission_rows(db):
    rows = db.connection.execute(
        "SELECT validator_address, commission, min_self_delegation, height FROM validator_commission"
    ).fetchall()
    return [ValidatorCommissionRow(*row) for row in rows]


def test_save_validator_twice(db):
    validator = ValidatorData(CONS_A, OPER_A, PUB_A, SELF_A, "1", "2", 1)
    db.save_validator_data(validator)
    db.save_validator_data(validator)

    assert _validator_rows(db) == [ValidatorRow(CONS_A, PUB_A)]
    assert _info_rows(db) == [ValidatorInfoRow(CONS_A, OPER_A, SELF_A, ONE, TWO, 1)]
    accounts = db.connection.execute("SELECT address FROM account").fetchall()
    assert accounts == [(SELF_A,)]


def test_save_validators_and_update(db):
    validators = [
        ValidatorData(CONS_A, OPER_A, PUB_A, SELF_A, "1", "2", 10),
        ValidatorData(CONS_B, OPER_B, PUB_B, SELF_B, "1", "2", 10),
    ]
    db.save_validators_data(validators)

    assert _validator_rows(db) == [ValidatorRow(CONS_A, PUB_A), ValidatorRow(CONS_B, PUB_B)]
    assert _info_rows(db) == [
        ValidatorInfoRow(CONS_A, OPER_A, SELF_A, ONE, TWO, 10),
        ValidatorInfoRow(CONS_B, OPER_B, SELF_B, ONE, TWO, 10),
    ]

    db.save_validators_data(
        [
            ValidatorData(CONS_A, OPER_A, PUB_A, SELF_A, "100", "200", 9),
            ValidatorData(CONS_B, OPER_B, PUB_B, SELF_B, "10", "5", 11),
        ]
    )

    assert len(_validator_rows(db)) == 2
    assert _info_rows(db) == [
        ValidatorInfoRow(CONS_A, OPER_A, SELF_A, ONE, TWO, 10),
        ValidatorInfoRow(CONS_B, OPER_B, SELF_B, "10.000000000000000000", "5.000000000000000000", 11),
    ]


def test_save_validators_empty_does_nothing(db):
    db.save_validators_data([])
    assert _validator_rows(db) == []


def _insert_raw(db):
    db.connection.executescript(
        f"""
INSERT INTO validator (consensus_address, consensus_pubkey) VALUES ('{CONS_A}', '{PUB_A}');
INSERT INTO validator (consensus_address, consensus_pubkey) VALUES ('{CONS_B}', '{PUB_B}');
INSERT INTO validator_info (consensus_address, operator_address, self_delegate_address, max_rate,
    max_change_rate, height) VALUES ('{CONS_A}', '{OPER_A}', '{SELF_A}', '1', '2', 1);
INSERT INTO validator_info (consensus_address, operator_address, self_delegate_address, max_rate,
    max_change_rate, height) VALUES ('{CONS_B}', '{OPER_B}', '{SELF_B}', '1', '2', 1);
"""
    )


def test_get_validator(db):
    db.connection.execute(
        "INSERT INTO validator (consensus_address, consensus_pubkey) VALUES (?, ?)", (CONS_A, PUB_A)
    )
    db.connection.execute(
        "INSERT INTO validator_info (consensus_address, operator_address, self_delegate_address, "
        "max_change_rate, max_rate, height) VALUES (?, ?, ?, '2', '1', 1)",
        (CONS_A, OPER_A, SELF_B),
    )

    validator = db.get_validator(OPER_A)
    assert validator.cons_address == CONS_A
    assert validator.val_address == OPER_A
    assert validator.cons_pub_key == PUB_A
    assert validator.self_delegate_address == SELF_B
    assert validator.parsed_max_change_rate() == Decimal(2)
    assert validator.parsed_max_rate() == Decimal(1)


def test_get_validator_missing(db):
    with pytest.raises(ValidatorNotFoundError):
        db.get_validator(OPER_A)


def test_get_validators_ordered_by_consensus_address(db):
    _insert_raw(db)
    assert db.get_validators() == [
        ValidatorData(CONS_B, OPER_B, PUB_B, SELF_B, "1", "2", 1),
        ValidatorData(CONS_A, OPER_A, PUB_A, SELF_A, "1", "2", 1),
    ]


def test_get_validator_by_self_delegate_address(db):
    _insert_raw(db)
    assert db.get_validator_by_self_delegate_address(SELF_B).val_address == OPER_B
    with pytest.raises(ValidatorNotFoundError):
        db.get_validator_by_self_delegate_address("cosmos1unknownexample")


def test_address_lookups(db):
    _insert_raw(db)
    assert db.get_validator_consensus_address(OPER_A) == CONS_A
    assert db.get_validator_operator_address(CONS_B) == OPER_B
    with pytest.raises(ValidatorNotFoundError):
        db.get_validator_consensus_address("cosmosvaloper1unknownexample")
    with pytest.raises(ValidatorNotFoundError):
        db.get_validator_operator_address("cosmosvalcons1unknownexample")


def test_save_validator_description(db):
    validator = _add_validator(db, CONS_A, OPER_A, PUB_A)

    db.save_validator_description(
        ValidatorDescription(
            OPER_A, Description("moniker", "identity", "", "securityContact", "details"), "avatar-url", 10
        )
    )
    expected = [
        ValidatorDescriptionRow.build(
            validator.cons_address, "moniker", "identity", "avatar-url", "", "securityContact", "details", 10
        )
    ]
    assert _description_rows(db) == expected

    db.save_validator_description(
        ValidatorDescription(OPER_A, Description("moniker"), "lower-avatar-url", 9)
    )
    assert _description_rows(db) == expected

    db.save_validator_description(
        ValidatorDescription(OPER_A, Description("moniker"), "new-avatar-url", 10)
    )
    rows = _description_rows(db)
    assert rows == [ValidatorDescriptionRow.build(CONS_A, "moniker", "", "new-avatar-url", "", "", "", 10)]
    assert rows[0].avatar_url == "new-avatar-url"

    db.save_validator_description(
        ValidatorDescription(
            OPER_A, Description("moniker", "higher-identity", "higher-website"), "higher-avatar-url", 11
        )
    )
    assert _description_rows(db) == [
        ValidatorDescriptionRow.build(
            CONS_A, "moniker", "higher-identity", "higher-avatar-url", "higher-website", "", "", 11
        )
    ]


def test_save_validator_description_do_not_modify(db):
    _add_validator(db, CONS_A, OPER_A, PUB_A)
    db.save_validator_description(
        ValidatorDescription(OPER_A, Description("moniker", "identity", "site", "", "details"), "avatar", 10)
    )
    db.save_validator_description(
        ValidatorDescription(
            OPER_A,
            Description("renamed", DO_NOT_MODIFY_DESC, DO_NOT_MODIFY_DESC, "", DO_NOT_MODIFY_DESC),
            DO_NOT_MODIFY_DESC,
            11,
        )
    )
    rows = _description_rows(db)
    assert rows == [ValidatorDescriptionRow.build(CONS_A, "renamed", "identity", "", "site", "", "details", 11)]
    assert rows[0].avatar_url == "avatar"


def test_save_validator_description_unknown_validator(db):
    with pytest.raises(ValidatorNotFoundError):
        db.save_validator_description(ValidatorDescription(OPER_A, Description("moniker"), "", 1))


def test_description_ensure_length():
    assert Description("m" * 70).ensure_length() == Description("m" * 70)
    with pytest.raises(ValueError, match="moniker"):
        Description("m" * 71).ensure_length()
    with pytest.raises(ValueError, match="details"):
        Description(details="d" * 281).ensure_length()


def test_description_update_keeps_do_not_modify_fields():
    existing = Description("old", "id", "web", "sec", "det")
    updated = existing.update(Description(DO_NOT_MODIFY_DESC, "new-id", DO_NOT_MODIFY_DESC, "", "x"))
    assert updated == Description("old", "new-id", "web", "", "x")


def test_save_validator_commission(db):
    _add_validator(db, CONS_A, OPER_A, PUB_A)

    db.save_validator_commission(ValidatorCommission(OPER_A, Decimal("0.011"), 12, 10))
    expected = [ValidatorCommissionRow.build(CONS_A, "0.011000000000000000", "12", 10)]
    assert _commission_rows(db) == expected

    db.save_validator_commission(ValidatorCommission(OPER_A, Decimal("0.050"), 100, 9))
    assert _commission_rows(db) == expected

    db.save_validator_commission(ValidatorCommission(OPER_A, Decimal("0.050"), 100, 10))
    assert _commission_rows(db) == [ValidatorCommissionRow.build(CONS_A, "0.050000000000000000", "100", 10)]

    db.save_validator_commission(ValidatorCommission(OPER_A, Decimal("0.70"), 200, 11))
    assert _commission_rows(db) == [ValidatorCommissionRow.build(CONS_A, "0.700000000000000000", "200", 11)]


def test_save_validator_commission_keeps_missing_values(db):
    _add_validator(db, CONS_A, OPER_A, PUB_A)
    db.save_validator_commission(ValidatorCommission(OPER_A, Decimal("0.1"), 5, 10))
    db.save_validator_commission(ValidatorCommission(OPER_A, None, 7, 11))
    assert _commission_rows(db) == [ValidatorCommissionRow.build(CONS_A, "0.100000000000000000", "7", 11)]


def test_save_validator_commission_nothing_to_update(db):
    db.save_validator_commission(ValidatorCommission("cosmosvaloper1unknownexample", None, None, 1))
    assert _commission_rows(db) == []


def test_save_validators_voting_powers(db):
    _add_validator(db, CONS_A, OPER_A, PUB_A)
    _add_validator(db, CONS_B, OPER_B, PUB_B, SELF_B)

    db.save_validators_voting_powers(
        [ValidatorVotingPower(CONS_A, 1000, 10), ValidatorVotingPower(CONS_B, 2000, 10)]
    )
    query = "SELECT validator_address, voting_power, height FROM validator_voting_power ORDER BY rowid"
    rows = [ValidatorVotingPowerRow(*row) for row in db.connection.execute(query)]
    assert rows == [ValidatorVotingPowerRow(CONS_A, 1000, 10), ValidatorVotingPowerRow(CONS_B, 2000, 10)]

    db.save_validators_voting_powers([ValidatorVotingPower(CONS_A, 5, 9), ValidatorVotingPower(CONS_B, 10, 11)])
    rows = [ValidatorVotingPowerRow(*row) for row in db.connection.execute(query)]
    assert rows == [ValidatorVotingPowerRow(CONS_A, 1000, 10), ValidatorVotingPowerRow(CONS_B, 10, 11)]


def test_save_validators_statuses(db):
    _add_validator(db, CONS_A, OPER_A, PUB_A)
    _add_validator(db, CONS_B, OPER_B, PUB_B, SELF_B)
    query = "SELECT status, jailed, validator_address, height FROM validator_status ORDER BY rowid"

    db.save_validators_statuses(
        [ValidatorStatus(CONS_A, PUB_A, 1, False, 10), ValidatorStatus(CONS_B, PUB_B, 2, True, 10)]
    )
    rows = [ValidatorStatusRow(s, bool(j), a, h) for s, j, a, h in db.connection.execute(query)]
    assert rows == [ValidatorStatusRow(1, False, CONS_A, 10), ValidatorStatusRow(2, True, CONS_B, 10)]

    db.save_validators_statuses(
        [ValidatorStatus(CONS_A, PUB_A, 3, True, 9), ValidatorStatus(CONS_B, PUB_B, 3, True, 11)]
    )
    rows = [ValidatorStatusRow(s, bool(j), a, h) for s, j, a, h in db.connection.execute(query)]
    assert rows == [ValidatorStatusRow(1, False, CONS_A, 10), ValidatorStatusRow(3, True, CONS_B, 11)]


def test_save_double_sign_evidence(db):
    _add_validator(db, CONS_A, OPER_A, PUB_A)
    vote_a = DoubleSignVote(1, 10, 1, "A42C9492F5DE01BFA6117137102C3EF9", CONS_A, 1, "signature-a")
    vote_b = DoubleSignVote(1, 10, 1, "418A20D12F45FC9340BE0CD2EDB0FFA1", CONS_A, 1, "signature-b")
    db.save_double_sign_evidence(DoubleSignEvidence(10, vote_a, vote_b))

    evidence = [
        DoubleSignEvidenceRow(*row)
        for row in db.connection.execute("SELECT height, vote_a_id, vote_b_id FROM double_sign_evidence")
    ]
    assert evidence == [DoubleSignEvidenceRow(10, 1, 2)]

    votes = [
        DoubleSignVoteRow(*row)
        for row in db.connection.execute(
            "SELECT id, type, height, round, block_id, validator_address, validator_index, signature "
            "FROM double_sign_vote ORDER BY id"
        )
    ]
    assert votes == [
        DoubleSignVoteRow(1, 1, 10, 1, "A42C9492F5DE01BFA6117137102C3EF9", CONS_A, 1, "signature-a"),
        DoubleSignVoteRow(2, 1, 10, 1, "418A20D12F45FC9340BE0CD2EDB0FFA1", CONS_A, 1, "signature-b"),
    ]


def test_save_double_sign_evidence_duplicate_vote_fails(db):
    vote_a = DoubleSignVote(1, 10, 1, "BLOCK-A", CONS_A, 1, "signature-a")
    vote_b = DoubleSignVote(1, 10, 1, "BLOCK-B", CONS_A, 1, "signature-b")
    db.save_double_sign_evidence(DoubleSignEvidence(10, vote_a, vote_b))
    with pytest.raises(RuntimeError, match="double sign vote"):
        db.save_double_sign_evidence(DoubleSignEvidence(10, vote_a, vote_b))
    count = db.connection.execute("SELECT COUNT(*) FROM double_sign_evidence").fetchone()[0]
    assert count == 1


def test_insert_enable_modules(db):
    modules = ["auth", "bank", "consensus", "distribution", "gov", "mint", "pricefeed", "staking", "supply"]
    db.insert_enable_modules(modules)
    rows = [ModuleRow(name) for (name,) in db.connection.execute("SELECT module_name FROM modules ORDER BY rowid")]
    assert rows == new_module_rows(modules)


def test_insert_enable_modules_replaces_previous(db):
    db.insert_enable_modules(["auth", "bank"])
    db.insert_enable_modules(["gov"])
    rows = db.connection.execute("SELECT module_name FROM modules").fetchall()
    assert rows == [("gov",)]