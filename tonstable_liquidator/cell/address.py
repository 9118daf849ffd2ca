"""Standard internal addresses (workchain + 256-bit account id)."""
from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass

from .cell import Cell, begin_cell

_TAG_BOUNCEABLE = 0x11
_TAG_NON_BOUNCEABLE = 0x51
_TAG_TEST_ONLY = 0x80


@dataclass(frozen=True)
class Address:
    """``addr_std`` address without anycast."""

    workchain: int
    hash_part: bytes

    def __post_init__(self) -> None:
        if not -128 <= self.workchain <= 127:
            raise ValueError(f"Workchain out of range: {self.workchain}")
        if len(self.hash_part) != 32:
            raise ValueError(
                f"Address hash must be 32 bytes, got {len(self.hash_part)}"
            )

    @classmethod
    def parse(cls, source: str) -> Address:
        """Parse a raw (``0:ab..``) or user-friendly (base64/base64url) address."""
        source = source.strip()
        if ":" in source:
            return cls._parse_raw(source)
        return cls._parse_friendly(source)

    @classmethod
    def _parse_raw(cls, source: str) -> Address:
        workchain, _, account = source.partition(":")
        try:
            hash_part = bytes.fromhex(account)
            return cls(int(workchain), hash_part)
        except ValueError as e:
            raise ValueError(f"Invalid raw address '{source}': {e}") from e

    @classmethod
    def _parse_friendly(cls, source: str) -> Address:
        if len(source) != 48:
            raise ValueError(f"Invalid address length: '{source}'")
        try:
            data = base64.b64decode(source.replace("-", "+").replace("_", "/"))
        except binascii.Error as e:
            raise ValueError(f"Invalid address encoding '{source}': {e}") from e

        if binascii.crc_hqx(data[:34], 0).to_bytes(2, "big") != data[34:]:
            raise ValueError(f"Address checksum mismatch: '{source}'")
        tag = data[0] & ~_TAG_TEST_ONLY
        if tag not in (_TAG_BOUNCEABLE, _TAG_NON_BOUNCEABLE):
            raise ValueError(f"Unknown address tag 0x{data[0]:02x}: '{source}'")

        workchain = data[1] if data[1] < 128 else data[1] - 256
        return cls(workchain, data[2:34])

    def to_raw_string(self) -> str:
        return f"{self.workchain}:{self.hash_part.hex()}"

    def to_string(
        self,
        bounceable: bool = True,
        test_only: bool = False,
        url_safe: bool = True,
    ) -> str:
        tag = _TAG_BOUNCEABLE if bounceable else _TAG_NON_BOUNCEABLE
        if test_only:
            tag |= _TAG_TEST_ONLY
        body = bytes((tag, self.workchain & 0xFF)) + self.hash_part
        data = body + binascii.crc_hqx(body, 0).to_bytes(2, "big")
        if url_safe:
            return base64.urlsafe_b64encode(data).decode()
        return base64.b64encode(data).decode()

    def __str__(self) -> str:
        return self.to_string()


def address_cell(address: Address | None) -> Cell:
    """A cell holding nothing but the stored address."""
    return begin_cell().store_address(address).end_cell()


def address_hash(address: Address | None) -> int:
    """Dictionary key the contract uses for address-keyed maps."""
    return int.from_bytes(address_cell(address).hash(), "big")
