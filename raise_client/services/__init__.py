"""Raise client services"""
from .pdas import AddressDeriver, AddressKind, to_pubkey
from .accounts import AccountFetcher, decode_account, encode_account
from .event_processor import EventProcessor, RaiseEvent
from .clock import FixedClock, SystemClock


# Lazy imports for the composer and clients (they depend on the input schemas)
def get_instruction_composer():
    from .instructions import InstructionComposer
    return InstructionComposer


def get_solana_client():
    from .solana_client import SolanaClient
    return SolanaClient


def get_raise_client():
    from .client import RaiseClient
    return RaiseClient


__all__ = [
    "AddressDeriver",
    "AddressKind",
    "to_pubkey",
    "AccountFetcher",
    "decode_account",
    "encode_account",
    "EventProcessor",
    "RaiseEvent",
    "FixedClock",
    "SystemClock",
    "get_instruction_composer",
    "get_solana_client",
    "get_raise_client",
]
