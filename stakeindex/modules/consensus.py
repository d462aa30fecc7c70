"""Tracking of the genesis and of the average block time."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Any, Callable, Protocol

from stakeindex.dbtypes.chain import GenesisRow

logger = logging.getLogger(__name__)

MODULE_NAME = "consensus"


class _ConsensusStore(Protocol):
    def get_genesis(self) -> GenesisRow | None: ...

    def save_genesis(self, genesis: GenesisRow) -> None: ...

    def get_last_block(self) -> Any: ...

    def get_block_height_time_minute_ago(self, now: datetime) -> Any: ...

    def get_block_height_time_hour_ago(self, now: datetime) -> Any: ...

    def get_block_height_time_day_ago(self, now: datetime) -> Any: ...

    def save_average_block_time_genesis(self, average: float, height: int) -> None: ...

    def save_average_block_time_per_min(self, average: float, height: int) -> None: ...

    def save_average_block_time_per_hour(self, average: float, height: int) -> None: ...

    def save_average_block_time_per_day(self, average: float, height: int) -> None: ...


class _Scheduler(Protocol):
    def every(self, interval: timedelta, job: Callable[[], None]) -> Any: ...


def _watch(method: Callable[[], None]) -> Callable[[], None]:
    def job() -> None:
        try:
            method()
        except Exception:
            logger.exception("error while running periodic operation of module %s", MODULE_NAME)

    return job


def _average_block_time(elapsed: timedelta, blocks: int) -> float:
    seconds = elapsed.total_seconds()
    if blocks == 0:
        return math.nan if seconds == 0 else math.copysign(math.inf, seconds)
    return seconds / blocks


class ConsensusModule:
    """The consensus module."""

    def __init__(self, db: _ConsensusStore) -> None:
        self.db = db

    def name(self) -> str:
        return MODULE_NAME

    def handle_block(self, block: Any) -> None:
        """Refresh the average block time since genesis; errors are only logged."""
        try:
            self.update_block_time_from_genesis(block)
        except Exception:
            logger.exception("error while updating block time from genesis at height %d", block.height)

    def update_block_time_from_genesis(self, block: Any) -> None:
        """Store the average block time between the genesis and the given block."""
        logger.debug("updating block time from genesis at height %d", block.height)
        try:
            genesis = self.db.get_genesis()
        except Exception as err:
            raise RuntimeError(f"error while getting genesis: {err}") from err
        if genesis is None:
            raise RuntimeError("genesis table is empty")

        average = _average_block_time(block.time - genesis.time, block.height - genesis.initial_height)
        self.db.save_average_block_time_genesis(average, block.height)

    def handle_genesis(self, doc: Any) -> None:
        """Store the chain id, time and initial height of the genesis."""
        logger.debug("parsing genesis", extra={"module": MODULE_NAME})
        row = GenesisRow(chain_id=doc.chain_id, time=doc.genesis_time, initial_height=doc.initial_height)
        try:
            self.db.save_genesis(row)
        except Exception as err:
            raise RuntimeError(f"error while storing genesis time: {err}") from err

    def register_periodic_operations(self, scheduler: _Scheduler) -> None:
        """Schedule the block time updates every minute, hour and day."""
        logger.debug("setting up periodic tasks", extra={"module": MODULE_NAME})
        operations = (
            (timedelta(minutes=1), self.update_block_time_in_minute),
            (timedelta(hours=1), self.update_block_time_in_hour),
            (timedelta(days=1), self.update_block_time_in_day),
        )
        for interval, method in operations:
            try:
                scheduler.every(interval, _watch(method))
            except Exception as err:
                raise RuntimeError(f"error while setting up consensus periodic operation: {err}") from err

    def _last_block_and_genesis(self) -> tuple[Any, GenesisRow | None]:
        try:
            block = self.db.get_last_block()
        except Exception as err:
            raise RuntimeError(f"error while getting last block: {err}") from err
        try:
            genesis = self.db.get_genesis()
        except Exception as err:
            raise RuntimeError(f"error while getting genesis: {err}") from err
        return block, genesis

    def _update(
        self,
        what: str,
        min_age: timedelta,
        lookup: Callable[[datetime], Any],
        save: Callable[[float, int], None],
    ) -> None:
        logger.debug("updating block time in %s", what, extra={"module": MODULE_NAME})
        block, genesis = self._last_block_and_genesis()
        if genesis is None:
            return
        if block.timestamp - genesis.time < min_age:
            return
        try:
            previous = lookup(block.timestamp)
        except Exception as err:
            raise RuntimeError(f"error while getting block height a {what} ago: {err}") from err
        average = _average_block_time(block.timestamp - previous.timestamp, block.height - previous.height)
        save(average, block.height)

    def update_block_time_in_minute(self) -> None:
        """Store the average block time over the latest minute."""
        self._update(
            "minute",
            timedelta(0),
            self.db.get_block_height_time_minute_ago,
            self.db.save_average_block_time_per_min,
        )

    def update_block_time_in_hour(self) -> None:
        """Store the average block time over the latest hour."""
        self._update(
            "hour",
            timedelta(0),
            self.db.get_block_height_time_hour_ago,
            self.db.save_average_block_time_per_hour,
        )

    def update_block_time_in_day(self) -> None:
        """Store the average block time over the latest day, once the chain is a day old."""
        self._update(
            "day",
            timedelta(hours=24),
            self.db.get_block_height_time_day_ago,
            self.db.save_average_block_time_per_day,
        )