from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Mapping, TypeVar

import aiohttp
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception

from staking_indexer.app.domain.errors import TransientChainError
from staking_indexer.app.domain.events import RawEvent, StakingEventType, to_json_payload
from staking_indexer.app.domain.ports.out import StakingChainClient, StakingEventDecoder


logger = logging.getLogger(__name__)

T = TypeVar("T")

_DEFAULT_TIMEOUT_SECONDS = 20.0


def _hex(value: Any) -> str:
    """HexBytes / bytes / str -> lowercase 0x-hex."""
    if isinstance(value, str):
        v = value.lower()
        return v if v.startswith("0x") else "0x" + v
    return "0x" + bytes(value).hex()


class Web3StakingChainClient(StakingChainClient):
    """
    StakingChainClient backed by AsyncWeb3 (eth_blockNumber + eth_getLogs).

    Every RPC call is bounded by `timeout` seconds. Timeouts, transport errors
    and provider errors surface as TransientChainError so the calling loop
    can retry on its next tick.

    Logs whose topic0 matches but which fail to decode (ABI drift) are logged
    and dropped; logs flagged `removed` by the node are ignored.
    """

    def __init__(
        self,
        *,
        w3: AsyncWeb3,
        contract_address: str,
        decoders: Mapping[StakingEventType, StakingEventDecoder],
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._w3 = w3
        self._contract_address = contract_address.lower()
        self._checksum_address = AsyncWeb3.to_checksum_address(contract_address)
        self._decoders = dict(decoders)
        self._timeout = timeout

    async def current_height(self) -> int:
        return int(await self._call("eth_blockNumber", self._w3.eth.block_number))

    async def fetch_events(
        self,
        *,
        event_type: StakingEventType,
        from_block: int,
        to_block: int,
    ) -> list[RawEvent]:
        if from_block < 0 or to_block < 0:
            raise ValueError("Block numbers must be non-negative")
        if from_block > to_block:
            return []

        head = await self.current_height()
        if from_block > head:
            return []
        to_block = min(to_block, head)

        try:
            decoder = self._decoders[event_type]
        except KeyError:
            raise ValueError(f"No decoder configured for event type {event_type.value!r}") from None

        logs = await self._call(
            "eth_getLogs",
            self._w3.eth.get_logs(
                {
                    "address": self._checksum_address,
                    "fromBlock": from_block,
                    "toBlock": to_block,
                    "topics": [_hex(decoder.topic0)],
                }
            ),
        )

        events: list[RawEvent] = []
        for log in logs:
            if log.get("removed"):
                continue

            decoded = decoder.decode(
                topics=[bytes(t) for t in log["topics"]],
                data=bytes(log["data"]),
            )
            if decoded is None:
                logger.warning(
                    "Could not decode %s log: tx=%s log_index=%s block=%s",
                    event_type.value,
                    _hex(log["transactionHash"]),
                    log["logIndex"],
                    log["blockNumber"],
                )
                continue

            events.append(
                RawEvent(
                    event_name=event_type.value,
                    contract_address=_hex(log["address"]),
                    tx_hash=_hex(log["transactionHash"]),
                    block_number=int(log["blockNumber"]),
                    block_hash=_hex(log["blockHash"]),
                    log_index=int(log["logIndex"]),
                    payload=to_json_payload(decoded),
                )
            )

        events.sort(key=lambda e: e.chain_position)
        return events

    async def _call(self, method: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise TransientChainError(f"{method} timed out after {self._timeout}s") from exc
        except (Web3Exception, aiohttp.ClientError, OSError, ValueError) as exc:
            # web3 surfaces JSON-RPC error responses as ValueError / Web3RPCError
            raise TransientChainError(f"{method} failed: {exc}") from exc
