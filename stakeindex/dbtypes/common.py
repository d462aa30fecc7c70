"""Rows of the account, module, supply, distribution, fee grant and mint tables."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from stakeindex.dbtypes.coins import DbCoin, DbDecCoin


@dataclass(frozen=True)
class AccountRow:
    """A single row of the account table."""

    address: str


@dataclass(frozen=True)
class ModuleRow:
    """A single row of the modules table."""

    module: str


def new_module_rows(names: Iterable[str]) -> list[ModuleRow]:
    """Build one module row for each given name, keeping their order."""
    return [ModuleRow(module=name) for name in names]


@dataclass
class SupplyRow:
    """The single row of the supply table."""

    coins: list[DbCoin]
    height: int
    one_row_id: bool = field(default=True, compare=False)


@dataclass
class DistributionParamsRow:
    """The single row of the distribution_params table."""

    params: str
    height: int
    one_row_id: bool = field(default=True, compare=False)


@dataclass
class CommunityPoolRow:
    """The single row of the community_pool table."""

    coins: list[DbDecCoin]
    height: int
    one_row_id: bool = field(default=True, compare=False)


@dataclass(frozen=True)
class FeeAllowanceRow:
    """A single row of the fee_grant_allowance table."""

    id: int
    grantee: str
    granter: str
    allowance: str
    height: int


@dataclass
class StakingParamsRow:
    """The single row of the staking_params table."""

    params: str
    height: int
    one_row_id: bool = field(default=True, compare=False)


@dataclass
class InflationRow:
    """The single row of the inflation table."""

    value: float
    height: int
    one_row_id: bool = field(default=True, compare=False)


@dataclass
class MintParamsRow:
    """The single row of the mint_params table."""

    params: str
    height: int
    one_row_id: bool = field(default=True, compare=False)