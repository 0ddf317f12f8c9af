from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping, Sequence

from eth_abi import decode as abi_decode
from eth_utils import keccak

from staking_indexer.app.domain.ports.out import StakingEventDecoder


def _is_hashed_topic(typ: str) -> bool:
    """Dynamic types are stored as keccak(value) when indexed."""
    return typ in ("string", "bytes") or typ.startswith("tuple") or typ.endswith("]")


def load_abi(abi_path: Path) -> list[dict[str, Any]]:
    if not abi_path.exists():
        raise FileNotFoundError(f"ABI file not found: {abi_path}")
    data = json.loads(abi_path.read_text(encoding="utf-8"))

    if isinstance(data, list):
        abi = data
    elif isinstance(data, dict) and "abi" in data and isinstance(data["abi"], list):
        abi = data["abi"]
    else:
        raise ValueError(
            f"Unsupported ABI JSON format in {abi_path}. Expected list or dict with 'abi' list."
        )

    return [x for x in abi if isinstance(x, dict)]


class AbiEventDecoder(StakingEventDecoder):
    """
    ABI-based decoder for one staking-contract event.

    Indexed arguments come from topics[1:], non-indexed ones from `data`.
    Output is a dict keyed by the ABI argument names with:
      - address -> lowercase 0x-hex str,
      - (u)intN -> int (full precision),
      - bytesN / hashed dynamic topics -> bytes.

    Example (Staked):
      event Staked(address indexed user, uint256 indexed poolId, uint256 amount)
      topic0 = keccak("Staked(address,uint256,uint256)")
      topic1 = user, topic2 = poolId, data = amount
    """

    def __init__(self, *, abi: Sequence[Mapping[str, Any]], event_name: str) -> None:
        self._event_abi = self._find_event(abi, event_name)
        self._event_name = event_name
        self._signature = self._event_signature(self._event_abi)
        self._topic0 = keccak(text=self._signature)

        inputs: list[Mapping[str, Any]] = list(self._event_abi.get("inputs", []))
        self._indexed_inputs = [i for i in inputs if i.get("indexed") is True]
        self._non_indexed_inputs = [i for i in inputs if not i.get("indexed")]

        self._non_indexed_types = [i["type"] for i in self._non_indexed_inputs]
        self._non_indexed_names = [i["name"] for i in self._non_indexed_inputs]

    @classmethod
    def from_abi_file(cls, abi_path: Path, event_name: str) -> "AbiEventDecoder":
        return cls(abi=load_abi(abi_path), event_name=event_name)

    @property
    def topic0(self) -> bytes:
        return self._topic0

    @property
    def event_name(self) -> str:
        return self._event_name

    @property
    def event_signature(self) -> str:
        return self._signature

    def decode(
        self,
        *,
        topics: Sequence[bytes],
        data: bytes,
    ) -> dict[str, Any] | None:
        # 1) must match expected event
        if not topics or bytes(topics[0]) != self._topic0:
            return None

        # 2) one topic per indexed argument
        if len(topics) - 1 != len(self._indexed_inputs):
            return None

        out: dict[str, Any] = {}
        try:
            for inp, topic in zip(self._indexed_inputs, topics[1:], strict=True):
                out[inp["name"]] = self._decode_topic(inp["type"], bytes(topic))

            # 3) non-indexed from data
            if self._non_indexed_inputs:
                values = abi_decode(self._non_indexed_types, bytes(data))
                for name, typ, val in zip(
                    self._non_indexed_names, self._non_indexed_types, values, strict=True
                ):
                    out[name] = self._normalize_abi_value(typ, val)
        except Exception:
            # eth_abi raises a family of decoding errors on short/garbled data
            return None

        return out

    # ---------------------------------------------------------------------
    # ABI helpers
    # ---------------------------------------------------------------------

    @staticmethod
    def _find_event(abi: Sequence[Mapping[str, Any]], event_name: str) -> Mapping[str, Any]:
        events = [x for x in abi if x.get("type") == "event" and x.get("name") == event_name]
        if not events:
            names = sorted({str(x.get("name")) for x in abi if x.get("type") == "event"})
            raise ValueError(f"Event {event_name!r} not found in ABI. Available events: {names}")
        if len(events) > 1:
            raise ValueError(
                f"Multiple events named {event_name!r} found in ABI. Disambiguation by full signature is required."
            )
        return events[0]

    @staticmethod
    def _event_signature(event_abi: Mapping[str, Any]) -> str:
        name = event_abi.get("name")
        inputs = event_abi.get("inputs", [])
        if not isinstance(name, str) or not isinstance(inputs, list):
            raise ValueError("Invalid event ABI: missing name/inputs")
        types: list[str] = []
        for inp in inputs:
            if not isinstance(inp, dict) or "type" not in inp:
                raise ValueError("Invalid event ABI inputs")
            types.append(inp["type"])
        return f"{name}({','.join(types)})"

    def _decode_topic(self, typ: str, topic: bytes) -> Any:
        if len(topic) != 32:
            raise ValueError(f"Expected 32-byte topic, got len={len(topic)}")
        if _is_hashed_topic(typ):
            return topic
        (value,) = abi_decode([typ], topic)
        return self._normalize_abi_value(typ, value)

    @staticmethod
    def _normalize_abi_value(typ: str, val: Any) -> Any:
        if typ == "address":
            if isinstance(val, str):
                return val.lower()
            if isinstance(val, (bytes, bytearray)):
                return "0x" + bytes(val)[-20:].hex()
            return val

        if typ.startswith("uint") or typ.startswith("int"):
            return int(val)

        if typ.startswith("bytes"):
            if isinstance(val, (bytes, bytearray, memoryview)):
                return bytes(val)
            return val

        return val
