# stakeindex

`stakeindex` is a library with the storage rows, validator storage, chain
modules and query actions of an indexer for a proof-of-stake chain.

- `stakeindex.dbtypes`: row dataclasses and coin helpers.
  - `coins`: `Coin`, `DecCoin`, `DbCoin`, `DbDecCoin`. It also has helpers
    that read and write the composite text form coins take in a column.
  - `common`, `chain`, `gov`, `validators`: typed rows for accounts,
    modules, supply, the community pool, parameters, genesis, consensus,
    blocks, slashing, price feeds, the staking pool, governance and
    validators.
- `stakeindex.database.validators`: `ValidatorDatabase`, validator storage
  over SQLite.
- `stakeindex.dbutils`: `split_accounts`, which batches accounts under the
  65535 statement parameter limit.
- `stakeindex.modules`: `BankModule`, `ConsensusModule` and
  `DistributionModule`.
- `stakeindex.actions`: the configuration, payload and response types,
  metrics, the HTTP `ActionsWorker` and the action handlers.

The only runtime dependency is `pyyaml`. The `test` extra adds `pytest`.

## Coins

A coin is stored as text such as `(uatom,100)`. An array of coins looks
like `{"(uatom,100)","(stake,5)"}`.

```python
from stakeindex.dbtypes.coins import DbCoin, db_coins_to_coins, parse_db_coins

stored = parse_db_coins('{"(uatom,100)","(stake,5)"}')
coins = db_coins_to_coins(stored)          # [Coin("uatom", 100), Coin("stake", 5)]
DbCoin(denom="uatom", amount="100").value()  # "(uatom,100)"
```

These conversions raise `ValueError` when a denomination or amount is
invalid. `format_dec` writes a decimal with exactly eighteen fractional
digits. `to_null_string` trims text and turns a blank value into `None`.

## Validator storage

`ValidatorDatabase` takes an `sqlite3.Connection`, or opens an in-memory
database when none is given. It creates its tables and can be used as a
context manager.

```python
from stakeindex.database.validators import ValidatorDatabase, ValidatorVotingPower
from stakeindex.dbtypes.validators import ValidatorData

with ValidatorDatabase() as db:
    db.save_validator_data(ValidatorData(
        cons_address="valcons1example",
        val_address="valoper1example",
        cons_pub_key="valconspub1example",
        self_delegate_address="acc1example",
        max_rate="1",
        max_change_rate="2",
        height=10,
    ))
    validator = db.get_validator("valoper1example")
    validator.max_rate  # "1.000000000000000000"
    db.save_validators_voting_powers([ValidatorVotingPower("valcons1example", 1000, 10)])
```

It can save and read validators, descriptions, commissions, voting powers,
statuses and double-sign evidence. Every upsert keeps the stored row unless
the new one has the same or a higher height.

- `save_validator_description` merges with the stored description. A field
  set to `DO_NOT_MODIFY_DESC` keeps its stored value.
- `save_validator_commission` keeps a stored value wherever the new one is
  `None`.
- `insert_enable_modules` replaces the stored list of enabled modules.

A lookup that finds nothing raises `ValidatorNotFoundError`, a
`LookupError`. A statement that fails raises `RuntimeError`.

## Chain modules

The modules take the objects they work with:

- a data source, such as a `BankSource` or `DistributionSource` protocol;
- a store that has the methods each module calls, such as `get_last_block`,
  `save_supply`, `get_genesis` and `save_community_pool`;
- a scheduler that has `every(interval, job)`.

`BankModule` refreshes the supply every ten minutes.
`DistributionModule` stores the genesis parameters and refreshes the
community pool every hour and after a successful fund message.
`ConsensusModule` stores the genesis and the average block time since
genesis, and over the last minute, hour and day.

## Actions

`parse_config` reads the `actions` section of a YAML document. It returns
`None` when that section is absent. `default_config()` gives port 3000 and
no node.

An `ActionContext` holds a node, which has `latest_height()`, and a sources
object. The sources object has `bank_source`, `staking_source` and
`distr_source`. `ActionsWorker.dispatch(path, body)` returns
`(status, content_type, body)`. `register_handlers(worker)` attaches every
handler:

| Path | Answer |
| --- | --- |
| `/account_balance` | balance of an address |
| `/delegation_reward` | rewards per validator |
| `/delegator_withdraw_address` | withdraw address |
| `/validator_commission_amount` | commission of a validator |
| `/delegation` | delegations of a delegator |
| `/delegation_total` | summed delegations per denomination |
| `/unbonding_delegation` | unbonding delegations |
| `/unbonding_delegation_total` | summed unbonding amount in the bond denomination |
| `/redelegation` | redelegations of a delegator |
| `/validator_delegations` | delegations to a validator |
| `/validator_redelegations_from` | redelegations away from a validator |
| `/validator_unbonding_delegations` | unbonding delegations from a validator |

A request body is a JSON object with an `input` object. That object holds
`address`, `height`, `offset`, `limit` and `count_total`. A height of `0`
means the latest height. The replies are:

- Success: status 200 with a JSON body.
- Handler error: status 400 with `{"message": ...}`.
- Body that is not valid JSON or has the wrong shape: status 500.
- Unknown path: status 404.

`make_server(port)` and `start(port)` serve the worker over HTTP.
`run_additional_operations(context, port)` builds the worker, registers
every handler and serves. It stops on SIGINT or SIGTERM, then calls the
node's `stop()` if it has one.

`stakeindex.actions.metrics` counts successes and errors per path and keeps
a response-time histogram. These metrics live in the process only.

## What it does not do

- There is no command-line program.
- There is no block parser or indexing loop.
- No data source queries a live node.
- There is no scheduler.
- The only storage provided is for validators and enabled modules. Stores
  for blocks, genesis, supply, the community pool and parameters must be
  supplied by the caller.
- The metrics are not exported over HTTP.