"""Solana RPC Client wrapper for Raise"""
import asyncio
from typing import Any, Awaitable, List, Optional, Sequence, Tuple, TypeVar

import structlog
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.core import RPCException, TransactionExpiredBlockheightExceededError, UnconfirmedTxError
from solana.rpc.types import MemcmpOpts, TxOpts
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from raise_client.config import get_settings
from raise_client.errors import LedgerSubmissionError, extract_error_code
from raise_client.services.ledger import MemcmpFilter
from raise_client.services.pdas import to_pubkey

logger = structlog.get_logger()
settings = get_settings()

T = TypeVar("T")

PUBKEY_LENGTH = 32


def _matches(data: bytes, filters: Sequence[MemcmpFilter]) -> bool:
    return all(data[f.offset:f.offset + len(f.data)] == f.data for f in filters)


def _rpc_filters(filters: Sequence[MemcmpFilter]) -> List[MemcmpOpts]:
    """Filters the RPC node can apply.

    The node expects base58 memcmp bytes; key-sized filters are encoded as
    addresses and the rest are applied locally after the fetch.
    """
    return [
        MemcmpOpts(offset=f.offset, bytes=str(Pubkey.from_bytes(f.data)))
        for f in filters
        if len(f.data) == PUBKEY_LENGTH
    ]


def _describe(error: Exception) -> str:
    """SolanaRpcException keeps its text in error_msg, not args"""
    return getattr(error, "error_msg", None) or str(error)


def _logs_from(error: RPCException) -> List[str]:
    """Program logs carried by a preflight failure, if any"""
    payload = error.args[0] if error.args else None
    data = getattr(payload, "data", None)
    logs = getattr(data, "logs", None)
    return list(logs or [])


class SolanaClient:
    """Async Solana RPC client implementing the ledger reader and writer"""

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        program_id: Optional[str] = None,
        commitment: Optional[Commitment] = None,
        timeout: Optional[float] = None,
    ):
        self.rpc_url = rpc_url or settings.solana_rpc_url
        self.program_id = to_pubkey(program_id or settings.program_id)
        self.commitment = commitment or Commitment(settings.commitment)
        self.timeout = timeout or settings.rpc_timeout_seconds
        self._client: Optional[AsyncClient] = None

    async def connect(self) -> None:
        """Establish connection to Solana RPC"""
        if self._client is None:
            self._client = AsyncClient(self.rpc_url, commitment=self.commitment)
            logger.info("Connected to Solana RPC", url=self.rpc_url)

    async def disconnect(self) -> None:
        """Close RPC connection"""
        if self._client:
            await self._client.close()
            self._client = None
            logger.info("Disconnected from Solana RPC")

    async def __aenter__(self) -> "SolanaClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.disconnect()

    @property
    def client(self) -> AsyncClient:
        """Get the async client, raise if not connected"""
        if self._client is None:
            raise RuntimeError("Solana client not connected. Call connect() first.")
        return self._client

    async def _bounded(self, call: Awaitable[T], timeout: Optional[float] = None) -> T:
        """Await an RPC call, giving up locally after the timeout"""
        return await asyncio.wait_for(call, timeout or self.timeout)

    async def get_slot(self, timeout: Optional[float] = None) -> int:
        """Get current slot"""
        response = await self._bounded(self.client.get_slot(commitment=self.commitment), timeout)
        return response.value

    async def get_block_time(self, slot: int, timeout: Optional[float] = None) -> Optional[int]:
        """Get block time for a slot"""
        response = await self._bounded(self.client.get_block_time(slot), timeout)
        return response.value

    async def get_cluster_time(self, timeout: Optional[float] = None) -> Optional[int]:
        """Unix time of the latest slot, the clock the program checks against"""
        slot = await self.get_slot(timeout)
        return await self.get_block_time(slot, timeout)

    # Ledger reader

    async def read(self, address: Pubkey, timeout: Optional[float] = None) -> Optional[bytes]:
        """Raw account data, None when the account does not exist"""
        try:
            response = await self._bounded(
                self.client.get_account_info(address, commitment=self.commitment, encoding="base64"),
                timeout,
            )
        except (RPCException, SolanaRpcException) as e:
            logger.warning("Account read failed", address=str(address), error=_describe(e)[:200])
            raise LedgerSubmissionError(_describe(e)) from e
        if response.value is None:
            return None
        return bytes(response.value.data)

    async def read_all_matching(
        self,
        filters: Sequence[MemcmpFilter],
        timeout: Optional[float] = None,
    ) -> List[Tuple[Pubkey, bytes]]:
        """All program accounts whose data matches every filter"""
        try:
            response = await self._bounded(
                self.client.get_program_accounts(
                    self.program_id,
                    commitment=self.commitment,
                    encoding="base64",
                    filters=_rpc_filters(filters),
                ),
                timeout,
            )
        except (RPCException, SolanaRpcException) as e:
            logger.warning("Program account scan failed", error=_describe(e)[:200])
            raise LedgerSubmissionError(_describe(e)) from e
        accounts = [(keyed.pubkey, bytes(keyed.account.data)) for keyed in response.value]
        return [(pubkey, data) for pubkey, data in accounts if _matches(data, filters)]

    # Ledger writer

    async def submit(
        self,
        instructions: Sequence[Instruction],
        signers: Sequence[Keypair],
        timeout: Optional[float] = None,
    ) -> str:
        """Sign, send and confirm one atomic transaction.

        The first signer pays fees. Preflight rejections, transport failures,
        unconfirmed transactions and transactions that land but fail are all
        raised as LedgerSubmissionError; nothing is retried.
        """
        if not signers:
            raise ValueError("At least one signer (the fee payer) is required")
        payer = signers[0]
        try:
            blockhash_resp = await self._bounded(self.client.get_latest_blockhash(self.commitment), timeout)
            blockhash = blockhash_resp.value.blockhash
            message = Message.new_with_blockhash(list(instructions), payer.pubkey(), blockhash)
            tx = Transaction(list(signers), message, blockhash)
            response = await self._bounded(
                self.client.send_transaction(tx, opts=TxOpts(preflight_commitment=self.commitment)),
                timeout,
            )
            signature = response.value
            confirmation = await self._bounded(
                self.client.confirm_transaction(signature, self.commitment), timeout
            )
        except RPCException as e:
            logs = _logs_from(e)
            code = extract_error_code([str(e), *logs])
            logger.warning("Transaction rejected", error=str(e)[:200], code=code)
            raise LedgerSubmissionError(str(e), logs=logs, code=code) from e
        except (UnconfirmedTxError, TransactionExpiredBlockheightExceededError, SolanaRpcException) as e:
            logger.warning("Transaction not confirmed", error=_describe(e)[:200])
            raise LedgerSubmissionError(_describe(e)) from e

        # confirm_transaction only waits for the commitment; execution errors sit in the status
        statuses = confirmation.value or []
        err = statuses[0].err if statuses and statuses[0] is not None else None
        if err is not None:
            raise await self._execution_failure(str(signature), err, timeout)

        logger.info("Transaction confirmed", signature=str(signature))
        return str(signature)

    async def _execution_failure(
        self, signature: str, err: Any, timeout: Optional[float] = None
    ) -> LedgerSubmissionError:
        """Error for a transaction that landed but failed on-chain"""
        try:
            logs = await self.get_transaction_logs(signature, timeout)
        except (RPCException, SolanaRpcException) as e:
            logger.warning("Could not fetch logs of failed transaction", signature=signature, error=_describe(e)[:200])
            logs = []
        code = extract_error_code([str(err), *logs])
        logger.warning("Transaction failed", signature=signature, error=str(err), code=code)
        return LedgerSubmissionError(f"Transaction {signature} failed: {err}", logs=logs, code=code)

    async def get_transaction_logs(self, signature: str, timeout: Optional[float] = None) -> List[str]:
        """Log messages of a confirmed transaction, for event decoding"""
        response = await self._bounded(
            self.client.get_transaction(
                Signature.from_string(signature),
                commitment=Confirmed,
                max_supported_transaction_version=0,
            ),
            timeout,
        )
        if response.value is None or response.value.transaction.meta is None:
            return []
        return list(response.value.transaction.meta.log_messages or [])


# Singleton instance
_solana_client: Optional[SolanaClient] = None


async def get_solana_client() -> SolanaClient:
    """Get or create Solana client singleton"""
    global _solana_client
    if _solana_client is None:
        _solana_client = SolanaClient()
        await _solana_client.connect()
    return _solana_client


async def close_solana_client() -> None:
    """Close Solana client singleton"""
    global _solana_client
    if _solana_client is not None:
        await _solana_client.disconnect()
        _solana_client = None
