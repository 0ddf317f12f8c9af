from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict

from web3 import AsyncHTTPProvider, AsyncWeb3

from staking_indexer.app.config import settings
from staking_indexer.app.domain.events import TRACKED_EVENT_TYPES
from staking_indexer.app.domain.ports.out import StakingChainClient
from staking_indexer.app.infrastructure.chain.web3_chain_client import Web3StakingChainClient
from staking_indexer.app.infrastructure.decoders.staking.event_decoder import (
    AbiEventDecoder,
    load_abi,
)

StakingChainClientFactory = Callable[[], StakingChainClient]

_CHAIN_CLIENT_REGISTRY: Dict[str, StakingChainClientFactory] = {}

# Resolve ABI path relative to the package, not the current working dir
_DEFAULT_ABI_PATH = (
    Path(__file__).resolve().parents[1]  # .../staking_indexer/app/infrastructure
    / "registry"
    / "abi"
    / "OzoneStaking.json"
)


def _make_web3_client(
    *,
    rpc_url: str,
    contract_address: str,
    abi_path: Path,
    timeout: float,
) -> StakingChainClient:
    """
    Wire dependencies for the web3 backend:
    - AsyncWeb3 HTTP provider with a bounded request timeout
    - one ABI decoder per tracked event (topic0 used as the getLogs filter)
    """
    w3 = AsyncWeb3(
        AsyncHTTPProvider(
            rpc_url,
            request_kwargs={"timeout": timeout},
        )
    )

    abi = load_abi(abi_path)
    decoders = {
        event_type: AbiEventDecoder(abi=abi, event_name=event_type.value)
        for event_type in TRACKED_EVENT_TYPES
    }

    return Web3StakingChainClient(
        w3=w3,
        contract_address=contract_address,
        decoders=decoders,
        timeout=timeout,
    )


# Register backends
_CHAIN_CLIENT_REGISTRY["web3"] = lambda: _make_web3_client(
    rpc_url=str(settings.rpc_url),
    contract_address=settings.staking_contract_address,
    abi_path=_DEFAULT_ABI_PATH,
    timeout=settings.rpc_timeout_seconds,
)


def staking_chain_client_factory(*, backend: str = "web3") -> StakingChainClient:
    try:
        factory = _CHAIN_CLIENT_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported chain client backend: {backend!r}")
    return factory()
