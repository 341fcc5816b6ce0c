"""
Read-through access to beacon-chain and execution-layer data.

The oracle never stores chain data. Every query goes to the source, and each
query has three possible results:

- A record (or list of records) when the source answered
- An empty list when the source answered with nothing (e.g., no attestations)
- None when the source did not answer usefully

None covers network failures, non-OK statuses, missing records and payloads
that fail validation. Callers decide what absence means for them; no query
ever substitutes a default or zero value.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, TypeVar, runtime_checkable

import httpx
from pydantic import BaseModel, ValidationError

from .models import AttestationRecord, EpochInfo, ExecutionBlock, SlotRef, ValidatorRecord

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
"""HTTP request timeout in seconds."""

DEFAULT_BEACON_URL = "https://beaconcha.in/api/v1"
"""Base URL of the beaconcha.in v1 API."""

EpochQuery = int | Literal["latest", "finalized"]
"""An epoch number or one of the symbolic epochs understood by the API."""

_M = TypeVar("_M", bound=BaseModel)


@runtime_checkable
class BeaconDataClient(Protocol):
    """
    Logical queries against the chain data sources.

    Implementations hold no state that affects results. A live source and a
    fixture-backed source are interchangeable.
    """

    async def fetch_validator(self, validator_id: int) -> ValidatorRecord | None:
        """Look up a validator's registry entry."""
        ...

    async def fetch_epoch(self, epoch: EpochQuery) -> EpochInfo | None:
        """Look up an epoch summary."""
        ...

    async def fetch_slots_for_epoch(self, epoch: int) -> list[SlotRef] | None:
        """List the slots of an epoch in ascending order."""
        ...

    async def fetch_attestations(self, slot: int) -> list[AttestationRecord] | None:
        """List the attestations included in a slot's block."""
        ...

    async def fetch_slot(self, slot_or_root: int | str) -> SlotRef | None:
        """Look up a slot by number or by beacon block root."""
        ...

    async def fetch_execution_block(self, block_number: int) -> ExecutionBlock | None:
        """Fetch an execution block with full transaction objects."""
        ...


def _parse(model: type[_M], data: Any, what: str) -> _M | None:
    """Validate a payload, reporting a malformed one as absent."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning("Malformed %s payload: %s", what, e)
        return None


def _parse_list(model: type[_M], data: Any, what: str) -> list[_M] | None:
    """Validate a list payload. One malformed entry makes the whole list absent."""
    if not isinstance(data, list):
        logger.warning("Expected a list for %s, got %s", what, type(data).__name__)
        return None
    parsed = [_parse(model, item, what) for item in data]
    if any(item is None for item in parsed):
        return None
    return [item for item in parsed if item is not None]


@dataclass(slots=True)
class LiveBeaconClient:
    """
    BeaconDataClient backed by the beaconcha.in REST API and an execution node.

    Beacon responses use the envelope `{"status": "OK", "data": ...}`.
    Execution blocks come from JSON-RPC `eth_getBlockByNumber`.
    """

    execution_url: str
    """Execution-layer JSON-RPC endpoint (including any key in the path)."""

    beacon_url: str = DEFAULT_BEACON_URL
    """Base URL of the beacon data API."""

    api_key: str | None = None
    """beaconcha.in API key, sent as the `apikey` query parameter."""

    http: httpx.AsyncClient = field(
        default_factory=lambda: httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
    )
    """Shared HTTP client. Injectable for testing."""

    _rpc_ids: itertools.count = field(default_factory=lambda: itertools.count(1), repr=False)

    async def fetch_validator(self, validator_id: int) -> ValidatorRecord | None:
        data = await self._get(f"validator/{validator_id}")

        # The endpoint answers with a list when given several indices.
        if isinstance(data, list):
            data = data[0] if data else None
        if data is None:
            return None
        return _parse(ValidatorRecord, data, f"validator {validator_id}")

    async def fetch_epoch(self, epoch: EpochQuery) -> EpochInfo | None:
        data = await self._get(f"epoch/{epoch}")
        if data is None:
            return None
        return _parse(EpochInfo, data, f"epoch {epoch}")

    async def fetch_slots_for_epoch(self, epoch: int) -> list[SlotRef] | None:
        data = await self._get(f"epoch/{epoch}/slots")
        if data is None:
            return None
        slots = _parse_list(SlotRef, data, f"epoch {epoch} slots")
        if slots is None:
            return None
        return sorted(slots, key=lambda s: s.slot)

    async def fetch_attestations(self, slot: int) -> list[AttestationRecord] | None:
        data = await self._get(f"slot/{slot}/attestations")
        if data is None:
            return None
        return _parse_list(AttestationRecord, data, f"slot {slot} attestations")

    async def fetch_slot(self, slot_or_root: int | str) -> SlotRef | None:
        data = await self._get(f"slot/{slot_or_root}")
        if data is None:
            return None
        return _parse(SlotRef, data, f"slot {slot_or_root}")

    async def fetch_execution_block(self, block_number: int) -> ExecutionBlock | None:
        request = {
            "jsonrpc": "2.0",
            "id": next(self._rpc_ids),
            "method": "eth_getBlockByNumber",
            "params": [hex(block_number), True],
        }

        try:
            response = await self.http.post(self.execution_url, json=request)
            response.raise_for_status()
            payload = response.json()
        except httpx.RequestError as exc:
            logger.warning("Network error fetching execution block %d: %s", block_number, exc)
            return None
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "HTTP error %d fetching execution block %d",
                exc.response.status_code,
                block_number,
            )
            return None
        except ValueError as exc:
            logger.warning("Undecodable response for execution block %d: %s", block_number, exc)
            return None

        if not isinstance(payload, dict) or "error" in payload:
            error = payload.get("error") if isinstance(payload, dict) else payload
            logger.warning("JSON-RPC error fetching block %d: %s", block_number, error)
            return None

        result = payload.get("result")
        if result is None:
            logger.warning("Execution block %d not found", block_number)
            return None
        return _parse(ExecutionBlock, result, f"execution block {block_number}")

    async def _get(self, path: str) -> Any | None:
        """GET a beacon endpoint and unwrap its envelope."""
        url = f"{self.beacon_url.rstrip('/')}/{path}"
        params = {"apikey": self.api_key} if self.api_key else None

        try:
            response = await self.http.get(url, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.RequestError as exc:
            logger.warning("Network error fetching %s: %s", path, exc)
            return None
        except httpx.HTTPStatusError as exc:
            logger.warning("HTTP error %d fetching %s", exc.response.status_code, path)
            return None
        except ValueError as exc:
            logger.warning("Undecodable response for %s: %s", path, exc)
            return None

        if not isinstance(payload, dict):
            logger.warning("Unexpected payload type for %s: %s", path, type(payload).__name__)
            return None
        if payload.get("status") != "OK":
            logger.warning("Beacon API status %r for %s", payload.get("status"), path)
            return None
        return payload.get("data")

    async def close(self) -> None:
        """Release the underlying HTTP connections."""
        await self.http.aclose()
