from __future__ import annotations

from typing import Literal

from staking_indexer.app.domain.ports.out import StakingChainClient


BlockSelector = int | str
_EARLIEST: Literal["earliest"] = "earliest"
_LATEST: Literal["latest"] = "latest"


def _parse_selector(value: BlockSelector) -> int | str:
    if isinstance(value, int):
        return value
    s = value.strip().lower()
    if s.isdigit():
        return int(s)
    return s


async def resolve_block_bounds_from_chain(
    *,
    chain_client: StakingChainClient,
    from_block: BlockSelector,
    to_block: BlockSelector,
    earliest_block: int,
) -> tuple[int, int]:
    """
    Resolve from_block / to_block into concrete block numbers.

    - ints (or digit strings) are returned as-is.
    - from_block "earliest" / "" -> earliest_block (contract deployment block).
    - to_block "latest" / ""     -> current chain height.
    """
    fb = _parse_selector(from_block)
    tb = _parse_selector(to_block)

    if isinstance(fb, str):
        if fb in ("", _EARLIEST):
            fb = earliest_block
        else:
            raise ValueError(f"Unsupported from_block value: {from_block!r}")

    if isinstance(tb, str):
        if tb in ("", _LATEST):
            tb = await chain_client.current_height()
        else:
            raise ValueError(f"Unsupported to_block value: {to_block!r}")

    # Range checks are BlockRange.validate()'s job
    return fb, tb
