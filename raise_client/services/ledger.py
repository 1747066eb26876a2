"""Narrow interfaces to the ledger.

The core only reads raw account bytes and submits instruction sets; anything
that satisfies these protocols (the RPC adapter, an in-memory double) will do.
"""
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple

from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey


@dataclass(frozen=True)
class MemcmpFilter:
    """Match accounts whose data at offset equals the given bytes"""
    offset: int
    data: bytes


class LedgerReader(Protocol):
    async def read(self, address: Pubkey) -> Optional[bytes]:
        """Raw account data, or None when the account does not exist"""
        ...

    async def read_all_matching(self, filters: Sequence[MemcmpFilter]) -> List[Tuple[Pubkey, bytes]]:
        ...


class LedgerWriter(Protocol):
    async def submit(self, instructions: Sequence[Instruction], signers: Sequence[Keypair]) -> str:
        """Submit atomically and return the transaction signature"""
        ...
