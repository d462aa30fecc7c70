"""Helpers for building bulk database statements."""

from __future__ import annotations

from typing import Sequence, TypeVar

T = TypeVar("T")

MAX_POSTGRESQL_PARAMS = 65535


def split_accounts(accounts: Sequence[T], params_number: int) -> list[list[T]]:
    """Split accounts into batches that keep a statement under the parameter limit."""
    if params_number <= 0:
        raise ValueError(f"invalid number of parameters per account: {params_number}")
    max_per_slice = MAX_POSTGRESQL_PARAMS // params_number
    if max_per_slice < 2:
        raise ValueError(f"too many parameters per account: {params_number}")

    slices: list[list[T]] = [[] for _ in range(len(accounts) // max_per_slice + 1)]
    slice_index = 0
    for index, account in enumerate(accounts):
        if slice_index >= len(slices):
            raise ValueError("accounts do not fit into the computed number of batches")
        slices[slice_index].append(account)
        if index > 0 and index % (max_per_slice - 1) == 0:
            slice_index += 1
    return slices