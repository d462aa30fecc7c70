"""Handlers of the action calls and the service that serves them."""

from __future__ import annotations

import logging
import signal
import threading
from typing import Any, Iterable

from stakeindex.actions.types import (
    ActionCoin,
    ActionContext,
    Address,
    Balance,
    Delegation,
    DelegationResponse,
    DelegationReward,
    Payload,
    Redelegation,
    RedelegationEntry,
    RedelegationResponse,
    UnbondingDelegation,
    UnbondingDelegationResponse,
    ValidatorCommissionAmount,
    convert_coins,
    convert_dec_coins,
)
from stakeindex.actions.worker import ActionsWorker

logger = logging.getLogger(__name__)

# Text carried by errors of queries about things the chain does not know.
NOT_FOUND = "NotFound"


def _delegations(responses: Iterable[Any]) -> list[Delegation]:
    return [
        Delegation(
            delegator_address=response.delegation.delegator_address,
            validator_address=response.delegation.validator_address,
            coins=convert_coins([response.balance]),
        )
        for response in responses
    ]


def _unbonding_delegations(responses: Iterable[Any]) -> list[UnbondingDelegation]:
    return [
        UnbondingDelegation(
            delegator_address=response.delegator_address,
            validator_address=response.validator_address,
            entries=list(response.entries),
        )
        for response in responses
    ]


def _redelegations(responses: Iterable[Any]) -> list[Redelegation]:
    return [
        Redelegation(
            delegator_address=response.redelegation.delegator_address,
            validator_src_address=response.redelegation.validator_src_address,
            validator_dst_address=response.redelegation.validator_dst_address,
            entries=[
                RedelegationEntry(
                    completion_time=entry.redelegation_entry.completion_time,
                    balance=entry.balance,
                )
                for entry in response.entries
            ],
        )
        for response in responses
    ]


def account_balance_handler(ctx: ActionContext, payload: Payload) -> Balance:
    """Return the balance of the payload address."""
    logger.debug("executing account balance action for %s at height %d", payload.address(), payload.input.height)
    height = ctx.get_height(payload)
    try:
        balance = ctx.sources.bank_source.get_account_balance(payload.address(), height)
    except Exception as err:
        raise RuntimeError(f"error while getting account balance: {err}") from err
    return Balance(coins=convert_coins(balance))


def delegation_handler(ctx: ActionContext, payload: Payload) -> Any:
    """Return the delegations made by the payload address."""
    logger.debug("executing delegations action for %s", payload.address())
    height = ctx.get_height(payload)
    try:
        res = ctx.sources.staking_source.get_delegations_with_pagination(
            height, payload.address(), payload.pagination()
        )
    except Exception as err:
        # A delegator unknown to the chain is not a failure: the reply is an empty object.
        if NOT_FOUND in str(err):
            return {}
        raise RuntimeError(f"error while getting delegator delegations: {err}") from err

    return DelegationResponse(delegations=_delegations(res.delegation_responses), pagination=res.pagination)


def total_delegation_amount_handler(ctx: ActionContext, payload: Payload) -> Any:
    """Return the total amount delegated by the payload address."""
    logger.debug(
        "executing total delegation amount action for %s at height %d", payload.address(), payload.input.height
    )
    height = ctx.get_height(payload)
    try:
        res = ctx.sources.staking_source.get_delegations_with_pagination(height, payload.address(), None)
    except Exception as err:
        if NOT_FOUND in str(err):
            return {}
        raise RuntimeError(f"error while getting delegator delegations: {err}") from err

    # Each delegation is compared with the totals present when it is reached:
    # a matching total grows, and every total of another denomination adds a new entry.
    totals: list[list[Any]] = []
    for response in res.delegation_responses:
        denom, amount = response.balance.denom, int(response.balance.amount)
        for total in list(totals):
            if total[0] == denom:
                total[1] += amount
            else:
                totals.append([denom, amount])
        if not totals:
            totals.append([denom, amount])

    return Balance(coins=[ActionCoin(amount=str(amount), denom=denom) for denom, amount in totals])


def delegation_reward_handler(ctx: ActionContext, payload: Payload) -> list[DelegationReward]:
    """Return the rewards of the payload address, one entry per validator."""
    logger.debug(
        "executing delegation rewards action for %s at height %d", payload.address(), payload.input.height
    )
    height = ctx.get_height(payload)
    try:
        rewards = ctx.sources.distr_source.delegator_total_rewards(payload.address(), height)
    except Exception as err:
        raise RuntimeError(f"error while getting delegator total rewards: {err}") from err

    return [
        DelegationReward(coins=convert_dec_coins(reward.reward), validator_address=reward.validator_address)
        for reward in rewards
    ]


def delegator_withdraw_address_handler(ctx: ActionContext, payload: Payload) -> Address:
    """Return the withdraw address of the payload address at the latest height."""
    logger.debug("executing delegator withdraw address action for %s", payload.address())
    height = ctx.get_height(None)
    try:
        withdraw_address = ctx.sources.distr_source.delegator_withdraw_address(payload.address(), height)
    except Exception as err:
        raise RuntimeError(f"error while getting delegator withdraw address: {err}") from err
    return Address(address=withdraw_address)


def redelegation_handler(ctx: ActionContext, payload: Payload) -> RedelegationResponse:
    """Return the redelegations made by the payload address."""
    logger.debug("executing redelegations action for %s at height %d", payload.address(), payload.input.height)
    height = ctx.get_height(payload)
    try:
        res = ctx.sources.staking_source.get_redelegations(
            height, delegator_addr=payload.address(), pagination=payload.pagination()
        )
    except Exception as err:
        raise RuntimeError(f"error while getting delegator redelegations: {err}") from err

    return RedelegationResponse(redelegations=_redelegations(res.redelegation_responses), pagination=res.pagination)


def unbonding_delegations_total(ctx: ActionContext, payload: Payload) -> Balance:
    """Return the total amount the payload address is unbonding, in the bond denomination."""
    logger.debug(
        "executing unbonding delegation total action for %s at height %d", payload.address(), payload.input.height
    )
    height = ctx.get_height(payload)
    staking = ctx.sources.staking_source
    try:
        res = staking.get_unbonding_delegations(height, payload.address(), None)
    except Exception as err:
        raise RuntimeError(f"error while getting delegator unbonding delegations: {err}") from err
    try:
        params = staking.get_params(height)
    except Exception as err:
        raise RuntimeError(f"error while getting bond denom type: {err}") from err

    total = sum(
        (int(entry.balance) for response in res.unbonding_responses for entry in response.entries),
        0,
    )
    return Balance(coins=[ActionCoin(amount=str(total), denom=params.bond_denom)])


def unbonding_delegations_handler(ctx: ActionContext, payload: Payload) -> UnbondingDelegationResponse:
    """Return the unbonding delegations of the payload address."""
    logger.debug(
        "executing unbonding delegations action for %s at height %d", payload.address(), payload.input.height
    )
    height = ctx.get_height(payload)
    try:
        res = ctx.sources.staking_source.get_unbonding_delegations(height, payload.address(), payload.pagination())
    except Exception as err:
        raise RuntimeError(f"error while getting delegator unbonding delegations: {err}") from err

    return UnbondingDelegationResponse(
        unbonding_delegations=_unbonding_delegations(res.unbonding_responses), pagination=res.pagination
    )


def validator_commission_amount_handler(ctx: ActionContext, payload: Payload) -> ValidatorCommissionAmount:
    """Return the commission of the payload validator at the latest height."""
    logger.debug(
        "executing validator commission action for %s at height %d", payload.address(), payload.input.height
    )
    height = ctx.get_height(None)
    try:
        commission = ctx.sources.distr_source.validator_commission(payload.address(), height)
    except Exception as err:
        raise RuntimeError(f"error while getting validator commission: {err}") from err
    return ValidatorCommissionAmount(coins=convert_dec_coins(commission))


def validator_delegation(ctx: ActionContext, payload: Payload) -> DelegationResponse:
    """Return the delegations made to the payload validator."""
    logger.debug(
        "executing validator delegation action for %s at height %d", payload.address(), payload.input.height
    )
    height = ctx.get_height(payload)
    try:
        res = ctx.sources.staking_source.get_validator_delegations_with_pagination(
            height, payload.address(), payload.pagination()
        )
    except Exception as err:
        raise RuntimeError(f"error while getting validator delegations: {err}") from err

    return DelegationResponse(delegations=_delegations(res.delegation_responses), pagination=res.pagination)


def validator_redelegations_from_handler(ctx: ActionContext, payload: Payload) -> RedelegationResponse:
    """Return the redelegations leaving the payload validator."""
    logger.debug(
        "executing validator redelegation action for %s at height %d", payload.address(), payload.input.height
    )
    height = ctx.get_height(payload)
    try:
        res = ctx.sources.staking_source.get_redelegations(
            height, src_validator_addr=payload.address(), pagination=payload.pagination()
        )
    except Exception as err:
        raise RuntimeError(f"error while getting redelegations from validator: {err}") from err

    return RedelegationResponse(redelegations=_redelegations(res.redelegation_responses), pagination=res.pagination)


def validator_unbonding_delegations_handler(ctx: ActionContext, payload: Payload) -> UnbondingDelegationResponse:
    """Return the unbonding delegations leaving the payload validator."""
    logger.debug(
        "executing validator unbonding delegations action for %s at height %d",
        payload.address(),
        payload.input.height,
    )
    height = ctx.get_height(payload)
    try:
        res = ctx.sources.staking_source.get_unbonding_delegations_from_validator(
            height, payload.address(), payload.pagination()
        )
    except Exception as err:
        raise RuntimeError(
            f"error while getting all unbonding delegations from validator {payload.address()}: {err}"
        ) from err

    return UnbondingDelegationResponse(
        unbonding_delegations=_unbonding_delegations(res.unbonding_responses), pagination=res.pagination
    )


HANDLERS = {
    "/account_balance": account_balance_handler,
    "/delegation_reward": delegation_reward_handler,
    "/delegator_withdraw_address": delegator_withdraw_address_handler,
    "/validator_commission_amount": validator_commission_amount_handler,
    "/delegation": delegation_handler,
    "/delegation_total": total_delegation_amount_handler,
    "/unbonding_delegation": unbonding_delegations_handler,
    "/unbonding_delegation_total": unbonding_delegations_total,
    "/redelegation": redelegation_handler,
    "/validator_delegations": validator_delegation,
    "/validator_redelegations_from": validator_redelegations_from_handler,
    "/validator_unbonding_delegations": validator_unbonding_delegations_handler,
}


def register_handlers(worker: ActionsWorker) -> None:
    """Register every action handler on the worker."""
    for path, handler in HANDLERS.items():
        worker.register_handler(path, handler)


def run_additional_operations(context: ActionContext, port: int) -> None:
    """Serve the actions on the given port until SIGINT or SIGTERM, then stop the node."""
    worker = ActionsWorker(context)
    register_handlers(worker)

    server = worker.make_server(port)
    previous: dict[int, Any] = {}

    def _shutdown(signum: int, frame: Any) -> None:
        threading.Thread(target=server.shutdown, daemon=True).start()

    if threading.current_thread() is threading.main_thread():
        for signum in (signal.SIGTERM, signal.SIGINT):
            previous[signum] = signal.signal(signum, _shutdown)

    try:
        with server:
            server.serve_forever()
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
        stop = getattr(context.node, "stop", None)
        if callable(stop):
            stop()