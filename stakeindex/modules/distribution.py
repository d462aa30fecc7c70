"""Tracking of distribution parameters and the community pool."""

from __future__ import annotations

import json
import logging
from datetime import timedelta
from typing import Any, Callable, Mapping, Protocol

from stakeindex.dbtypes.coins import DecCoin

logger = logging.getLogger(__name__)

MODULE_NAME = "distribution"
MSG_FUND_COMMUNITY_POOL = "/cosmos.distribution.v1beta1.MsgFundCommunityPool"
COMMUNITY_POOL_UPDATE_INTERVAL = timedelta(hours=1)


class DistributionSource(Protocol):
    """Where distribution data is read from."""

    def validator_commission(self, val_oper_addr: str, height: int) -> list[DecCoin]: ...

    def delegator_total_rewards(self, delegator: str, height: int) -> list[Any]: ...

    def delegator_withdraw_address(self, delegator: str, height: int) -> str: ...

    def community_pool(self, height: int) -> list[DecCoin]: ...

    def params(self, height: int) -> Any: ...


class _DistributionStore(Protocol):
    def get_last_block_height(self) -> int: ...

    def save_distribution_params(self, params: Any, height: int) -> None: ...

    def save_community_pool(self, pool: list[DecCoin], height: int) -> None: ...


class _Scheduler(Protocol):
    def every(self, interval: timedelta, job: Callable[[], None]) -> Any: ...


def _watch(method: Callable[[], None]) -> Callable[[], None]:
    def job() -> None:
        try:
            method()
        except Exception:
            logger.exception("error while running periodic operation of module %s", MODULE_NAME)

    return job


def _msg_type(msg: Any) -> str | None:
    if isinstance(msg, Mapping):
        return msg.get("@type")
    return getattr(msg, "type_url", None)


class DistributionModule:
    """The distribution module."""

    def __init__(self, source: DistributionSource, db: _DistributionStore, cdc: Any = None) -> None:
        self.source = source
        self.db = db
        self.cdc = cdc

    def name(self) -> str:
        return MODULE_NAME

    def handle_genesis(self, initial_height: int, app_state: Mapping[str, Any]) -> None:
        """Store the distribution parameters found in the genesis state."""
        logger.debug("parsing genesis", extra={"module": MODULE_NAME})
        raw = app_state.get(MODULE_NAME)
        try:
            if isinstance(raw, (bytes, bytearray, str)):
                state = json.loads(raw)
            elif isinstance(raw, Mapping):
                state = raw
            else:
                raise ValueError("missing distribution genesis state")
            if not isinstance(state, Mapping):
                raise ValueError("distribution genesis state must be an object")
        except ValueError as err:
            raise ValueError(f"error while reading distribution genesis data: {err}") from err

        params = state.get("params", {})
        try:
            self.db.save_distribution_params(params, initial_height)
        except Exception as err:
            raise RuntimeError(f"error while storing genesis distribution params: {err}") from err

    def handle_msg(self, msg: Any, tx: Any) -> None:
        """Refresh the community pool after a successful fund message."""
        if not tx.logs:
            return
        if _msg_type(msg) == MSG_FUND_COMMUNITY_POOL:
            self.update_community_pool(tx.height)

    def register_periodic_operations(self, scheduler: _Scheduler) -> None:
        """Schedule the community pool update every hour."""
        logger.debug("setting up periodic tasks", extra={"module": MODULE_NAME})
        try:
            scheduler.every(COMMUNITY_POOL_UPDATE_INTERVAL, _watch(self.get_latest_community_pool))
        except Exception as err:
            raise RuntimeError(f"error while scheduling distribution periodic operation: {err}") from err

    def get_latest_community_pool(self) -> None:
        """Store the community pool at the last stored block."""
        try:
            height = self.db.get_last_block_height()
        except Exception as err:
            raise RuntimeError(f"error while getting latest block height: {err}") from err
        self.update_community_pool(height)

    def update_community_pool(self, height: int) -> None:
        """Read the community pool at the given height and store it."""
        logger.debug("getting community pool at height %d", height, extra={"module": MODULE_NAME})
        try:
            pool = self.source.community_pool(height)
        except Exception as err:
            raise RuntimeError(f"error while getting community pool: {err}") from err
        self.db.save_community_pool(pool, height)

    def update_params(self, height: int) -> None:
        """Read the parameters at the given height and store them."""
        logger.debug("updating params at height %d", height, extra={"module": MODULE_NAME})
        try:
            params = self.source.params(height)
        except Exception as err:
            raise RuntimeError(f"error while getting params: {err}") from err
        self.db.save_distribution_params(params, height)