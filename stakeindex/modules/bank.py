"""Periodic tracking of the total token supply."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Callable, Protocol, Sequence

from stakeindex.dbtypes.coins import Coin

logger = logging.getLogger(__name__)

SUPPLY_UPDATE_INTERVAL = timedelta(minutes=10)


class BankSource(Protocol):
    """Where balances and supply are read from."""

    def get_balances(self, addresses: Sequence[str], height: int) -> list[Any]: ...

    def get_supply(self, height: int) -> list[Coin]: ...

    def get_account_balance(self, address: str, height: int) -> list[Coin]: ...


class _SupplyStore(Protocol):
    def get_last_block(self) -> Any: ...

    def save_supply(self, supply: list[Coin], height: int) -> None: ...


class _Scheduler(Protocol):
    def every(self, interval: timedelta, job: Callable[[], None]) -> Any: ...


def _watch(method: Callable[[], None], module: str) -> Callable[[], None]:
    def job() -> None:
        try:
            method()
        except Exception:
            logger.exception("error while running periodic operation of module %s", module)

    return job


class BankModule:
    """The bank module: keeps the stored supply up to date."""

    def __init__(self, source: BankSource, db: _SupplyStore, message_parser: Any = None) -> None:
        self.source = source
        self.db = db
        self.message_parser = message_parser

    def name(self) -> str:
        return "bank"

    def register_periodic_operations(self, scheduler: _Scheduler) -> None:
        """Schedule the supply update every ten minutes."""
        logger.debug("setting up periodic tasks", extra={"module": "bank"})
        try:
            scheduler.every(SUPPLY_UPDATE_INTERVAL, _watch(self.update_supply, self.name()))
        except Exception as err:
            raise RuntimeError(f"error while setting up bank periodic operation: {err}") from err

    def update_supply(self) -> None:
        """Read the supply at the last stored block and store it."""
        logger.debug("updating total supply", extra={"module": "bank"})
        try:
            block = self.db.get_last_block()
        except Exception as err:
            raise RuntimeError(f"error while getting last block: {err}") from err

        supply = self.source.get_supply(block.height)
        self.db.save_supply(supply, block.height)