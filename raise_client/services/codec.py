"""Borsh reading and writing for Raise accounts, events and instruction args.

Integers are little endian and fixed width, strings and vecs carry a u32
length prefix, options a one-byte tag, and enums a one-byte variant index in
declaration order.
"""
import hashlib
from enum import Enum
from typing import Callable, List, Optional, Type, TypeVar

from solders.pubkey import Pubkey

from raise_client.errors import AccountDecodeError, MalformedSeedError

T = TypeVar("T")
E = TypeVar("E", bound=Enum)

U8_MAX = 2**8 - 1
U16_MAX = 2**16 - 1
U32_MAX = 2**32 - 1
U64_MAX = 2**64 - 1


def encode_u64(value: int) -> bytes:
    """Fixed 8-byte little endian encoding used in PDA seeds"""
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedSeedError(f"u64 seed must be an int, got {type(value).__name__}")
    if not 0 <= value <= U64_MAX:
        raise MalformedSeedError(f"u64 seed out of range: {value}")
    return value.to_bytes(8, "little")


def decode_u64(data: bytes) -> int:
    if len(data) != 8:
        raise MalformedSeedError(f"u64 needs exactly 8 bytes, got {len(data)}")
    return int.from_bytes(data, "little")


def encode_u8(value: int) -> bytes:
    """Single-byte encoding used for indices, rounds and small counts"""
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedSeedError(f"u8 seed must be an int, got {type(value).__name__}")
    if not 0 <= value <= U8_MAX:
        raise MalformedSeedError(f"u8 seed out of range: {value}")
    return bytes([value])


def _anchor_hash(preimage: str) -> bytes:
    return hashlib.sha256(preimage.encode()).digest()[:8]


def account_discriminator(name: str) -> bytes:
    """First 8 bytes of sha256("account:<StructName>")"""
    return _anchor_hash(f"account:{name}")


def instruction_discriminator(name: str) -> bytes:
    """First 8 bytes of sha256("global:<snake_case_name>")"""
    return _anchor_hash(f"global:{name}")


def event_discriminator(name: str) -> bytes:
    return _anchor_hash(f"event:{name}")


def enum_index(member: Enum) -> int:
    return list(type(member)).index(member)


def enum_from_index(enum_cls: Type[E], index: int) -> E:
    members = list(enum_cls)
    if index >= len(members):
        raise AccountDecodeError(f"Invalid {enum_cls.__name__} variant {index}")
    return members[index]


class BorshReader:
    """Sequential reader over a byte buffer"""

    def __init__(self, data: bytes, offset: int = 0):
        self.data = bytes(data)
        self.offset = offset

    @property
    def remaining(self) -> int:
        return len(self.data) - self.offset

    def _take(self, size: int) -> bytes:
        end = self.offset + size
        if end > len(self.data):
            raise AccountDecodeError(
                f"Unexpected end of data: need {size} bytes at offset {self.offset}, "
                f"have {len(self.data) - self.offset}"
            )
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def _uint(self, size: int) -> int:
        return int.from_bytes(self._take(size), "little")

    def u8(self) -> int:
        return self._uint(1)

    def u16(self) -> int:
        return self._uint(2)

    def u32(self) -> int:
        return self._uint(4)

    def u64(self) -> int:
        return self._uint(8)

    def i64(self) -> int:
        return int.from_bytes(self._take(8), "little", signed=True)

    def boolean(self) -> bool:
        value = self.u8()
        if value > 1:
            raise AccountDecodeError(f"Invalid bool byte {value}")
        return value == 1

    def pubkey(self) -> Pubkey:
        return Pubkey.from_bytes(self._take(32))

    def string(self) -> str:
        length = self.u32()
        raw = self._take(length)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise AccountDecodeError(f"Invalid utf-8 string: {e}") from e

    def bytes_fixed(self, size: int) -> bytes:
        return self._take(size)

    def option(self, read: Callable[[], T]) -> Optional[T]:
        tag = self.u8()
        if tag == 0:
            return None
        if tag != 1:
            raise AccountDecodeError(f"Invalid option tag {tag}")
        return read()

    def vec(self, read: Callable[[], T]) -> List[T]:
        return [read() for _ in range(self.u32())]

    def array(self, read: Callable[[], T], size: int) -> List[T]:
        return [read() for _ in range(size)]

    def enum(self, enum_cls: Type[E]) -> E:
        return enum_from_index(enum_cls, self.u8())


class BorshWriter:
    """Accumulating writer; every method returns self so calls chain"""

    def __init__(self):
        self._parts: List[bytes] = []

    def _uint(self, value: int, size: int, signed: bool = False) -> "BorshWriter":
        try:
            self._parts.append(value.to_bytes(size, "little", signed=signed))
        except OverflowError as e:
            raise ValueError(f"{value} does not fit in {size * 8} bits") from e
        return self

    def u8(self, value: int) -> "BorshWriter":
        return self._uint(value, 1)

    def u16(self, value: int) -> "BorshWriter":
        return self._uint(value, 2)

    def u32(self, value: int) -> "BorshWriter":
        return self._uint(value, 4)

    def u64(self, value: int) -> "BorshWriter":
        return self._uint(value, 8)

    def i64(self, value: int) -> "BorshWriter":
        return self._uint(value, 8, signed=True)

    def boolean(self, value: bool) -> "BorshWriter":
        return self.u8(1 if value else 0)

    def pubkey(self, value: Pubkey) -> "BorshWriter":
        self._parts.append(bytes(value))
        return self

    def string(self, value: str) -> "BorshWriter":
        raw = value.encode("utf-8")
        self.u32(len(raw))
        self._parts.append(raw)
        return self

    def raw(self, value: bytes) -> "BorshWriter":
        self._parts.append(bytes(value))
        return self

    def option(self, value: Optional[T], write: Callable[[T], object]) -> "BorshWriter":
        if value is None:
            return self.u8(0)
        self.u8(1)
        write(value)
        return self

    def vec(self, values: List[T], write: Callable[[T], object]) -> "BorshWriter":
        self.u32(len(values))
        for value in values:
            write(value)
        return self

    def enum(self, member: Enum) -> "BorshWriter":
        return self.u8(enum_index(member))

    def to_bytes(self) -> bytes:
        return b"".join(self._parts)
