"""
Ledger access over Ethereum JSON-RPC.

Reads are contract calls. Writes are signed transactions sent from the
oracle's account; each write waits for its receipt before releasing the
write lock, so nonces are consumed strictly in order.

Declarations are read by polling `NewColluder` logs block range by block
range. The committing colluder is the sender of the emitting transaction.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from typing import Any

import aiohttp
from eth_account import Account
from pydantic import ValidationError
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import ContractLogicError, Web3Exception

from collusion_oracle.types import LedgerRejectedError, LedgerUnavailableError

from .abi import COLLUSION_CONTRACT_ABI
from .interface import Declaration

logger = logging.getLogger(__name__)

DEFAULT_RPC_TIMEOUT = 30
"""JSON-RPC request timeout in seconds."""

DEFAULT_EVENT_POLL_INTERVAL = 2.0
"""Seconds between polls for new contract events."""

_TRANSPORT_ERRORS = (Web3Exception, aiohttp.ClientError, OSError, TimeoutError)
"""Failures that mean the ledger did not answer, as opposed to refusing."""


def _revert_reason(exc: ContractLogicError) -> str:
    """Extract the contract's revert string from a logic error."""
    message = getattr(exc, "message", None) or str(exc)
    return message.removeprefix("execution reverted: ")


@dataclass(slots=True)
class Web3Ledger:
    """Ledger implementation backed by the deployed collusion contract."""

    w3: Any
    """AsyncWeb3 instance connected to the ledger's RPC endpoint."""

    contract: Any
    """Contract handle bound to the collusion contract's address and ABI."""

    account: Any
    """Local account that signs the oracle's transactions."""

    event_poll_interval: float = DEFAULT_EVENT_POLL_INTERVAL
    """Seconds between log polls."""

    from_block: int | None = None
    """First block to read events from. None starts at the chain head."""

    _write_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @classmethod
    def create(
        cls,
        rpc_url: str,
        contract_address: str,
        private_key: str,
        *,
        event_poll_interval: float = DEFAULT_EVENT_POLL_INTERVAL,
        from_block: int | None = None,
    ) -> Web3Ledger:
        """Connect to the contract at `contract_address` through `rpc_url`."""
        w3 = AsyncWeb3(
            AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": DEFAULT_RPC_TIMEOUT})
        )
        contract = w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(contract_address),
            abi=COLLUSION_CONTRACT_ABI,
        )
        account = Account.from_key(private_key)
        logger.debug("Ledger client for %s initialized via %s", contract_address, rpc_url)
        return cls(
            w3=w3,
            contract=contract,
            account=account,
            event_poll_interval=event_poll_interval,
            from_block=from_block,
        )

    async def _call(self, name: str, *args: Any) -> Any:
        """Invoke a view function."""
        try:
            return await getattr(self.contract.functions, name)(*args).call()
        except ContractLogicError as exc:
            raise LedgerRejectedError(name, _revert_reason(exc)) from exc
        except _TRANSPORT_ERRORS as exc:
            raise LedgerUnavailableError(name, str(exc)) from exc

    async def _transact(self, name: str, *args: Any) -> None:
        """
        Sign, send and await a state-changing call.

        Reverts surface at gas estimation (ContractLogicError) or as a
        status-0 receipt. Both are rejections.
        """
        async with self._write_lock:
            function = getattr(self.contract.functions, name)(*args)
            try:
                nonce = await self.w3.eth.get_transaction_count(self.account.address, "pending")
                tx = await function.build_transaction(
                    {"from": self.account.address, "nonce": nonce}
                )
                signed = self.account.sign_transaction(tx)
                tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
                receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash)
            except ContractLogicError as exc:
                raise LedgerRejectedError(name, _revert_reason(exc)) from exc
            except _TRANSPORT_ERRORS as exc:
                raise LedgerUnavailableError(name, str(exc)) from exc

            if receipt["status"] != 1:
                raise LedgerRejectedError(name, f"transaction {tx_hash.hex()} reverted")
            logger.info("Ledger accepted %s in block %s", name, receipt["blockNumber"])

    # -- Reads --

    async def is_ready_to_begin(self) -> bool:
        return bool(await self._call("isReadyToBegin"))

    async def has_begun(self) -> bool:
        return bool(await self._call("attackHasBegun"))

    async def get_colluding_validator_ids(self) -> list[int]:
        values = await self._call("getColludingValidators")
        try:
            return [int(v) for v in values]
        except (TypeError, ValueError) as exc:
            raise LedgerUnavailableError(
                "getColludingValidators", f"malformed validator id: {exc}"
            ) from exc

    async def percentage_controlled(self, threshold: int) -> bool:
        return bool(await self._call("percentageOfStakedEtherControlledIs", threshold))

    # -- Writes --

    async def post_validator_info(self, validator_id: int, balance_gwei: int, status: str) -> None:
        await self._transact("postValidatorInfo", str(validator_id), balance_gwei, status)

    async def update_total_stake(self, amount_wei: int) -> None:
        await self._transact("updateStakedEther", amount_wei)

    async def post_attack_parameters(self, target_address: str, start_epoch: int) -> None:
        await self._transact(
            "postAttackInfo", AsyncWeb3.to_checksum_address(target_address), start_epoch
        )

    async def begin_attack_if_ready(self) -> None:
        await self._transact("beginAttackIfPossible")

    async def post_attack_outcome(self, success: bool) -> None:
        await self._transact("postAttackSuccess", success)

    async def post_misbehaving_validators(self, validator_ids: Sequence[int]) -> None:
        await self._transact("postAndSlashMisbehavingValidators", [str(v) for v in validator_ids])

    # -- Events --

    async def declarations(self) -> AsyncIterator[Declaration]:
        next_block = self.from_block

        while True:
            batch: list[Declaration] = []
            try:
                latest = await self.w3.eth.block_number
                if next_block is None:
                    next_block = latest
                if latest >= next_block:
                    logs = await self.contract.events.NewColluder.get_logs(
                        from_block=next_block, to_block=latest
                    )
                    for log in logs:
                        declaration = await self._to_declaration(log)
                        if declaration is not None:
                            batch.append(declaration)
                    next_block = latest + 1
            except _TRANSPORT_ERRORS as exc:
                # Keep next_block where it was so the range is read again.
                logger.warning("Failed to poll NewColluder events: %s", exc)
                batch.clear()

            for declaration in batch:
                yield declaration

            await asyncio.sleep(self.event_poll_interval)

    async def _to_declaration(self, log: Any) -> Declaration | None:
        """Build a declaration from a decoded `NewColluder` log."""
        args = log["args"]
        tx = await self.w3.eth.get_transaction(log["transactionHash"])
        try:
            return Declaration(
                identity=str(tx["from"]),
                validator_id=int(args["validatorId"]),
                signature=str(args["signature"]),
                message="0x" + bytes(args["messageHash"]).hex(),
            )
        except (ValueError, ValidationError) as e:
            logger.warning("Ignoring malformed NewColluder event %s: %s", args, e)
            return None
