"""Cells, builders and slices: the bounded bit/reference tree of the ledger."""
from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING, Any, Iterable

from ..errors import MalformedCell

if TYPE_CHECKING:
    from .address import Address
    from .dictionary import Dictionary, DictionaryValue

MAX_BITS = 1023
MAX_REFS = 4


class Cell:
    """Immutable cell: up to 1023 data bits and up to four child references.

    Data bits are kept as a big integer together with their length, so the
    bit at position 0 is the most significant bit of ``bits``.
    """

    __slots__ = ("_bits", "_length", "_refs", "_hash", "_depth")

    EMPTY: Cell

    def __init__(
        self, bits: int = 0, length: int = 0, refs: Iterable[Cell] = ()
    ) -> None:
        refs = tuple(refs)
        if length < 0 or length > MAX_BITS:
            raise MalformedCell(f"Cell data overflow: {length} bits")
        if len(refs) > MAX_REFS:
            raise MalformedCell(f"Cell reference overflow: {len(refs)} refs")
        if bits < 0 or bits >> length:
            raise MalformedCell("Cell data does not fit its declared bit length")
        self._bits = bits
        self._length = length
        self._refs: tuple[Cell, ...] = refs
        self._hash: bytes | None = None
        self._depth: int | None = None

    @property
    def bits(self) -> int:
        return self._bits

    @property
    def bit_length(self) -> int:
        return self._length

    @property
    def refs(self) -> tuple[Cell, ...]:
        return self._refs

    # ------------------------------------------------------------------
    # Representation
    # ------------------------------------------------------------------

    def descriptors(self) -> bytes:
        """The two descriptor bytes d1 (ref count) and d2 (data length)."""
        d1 = len(self._refs)
        d2 = self._length // 8 + (self._length + 7) // 8
        return bytes((d1, d2))

    def padded_data(self) -> bytes:
        """Data bytes, with a completion tag when the length is not byte-aligned."""
        size = (self._length + 7) // 8
        pad = size * 8 - self._length
        if pad == 0:
            return self._bits.to_bytes(size, "big")
        value = (self._bits << pad) | (1 << (pad - 1))
        return value.to_bytes(size, "big")

    @property
    def depth(self) -> int:
        if self._depth is None:
            self._depth = (
                1 + max(ref.depth for ref in self._refs) if self._refs else 0
            )
        return self._depth

    def hash(self) -> bytes:
        """SHA-256 of the standard representation of this (ordinary) cell."""
        if self._hash is None:
            repr_ = bytearray(self.descriptors())
            repr_ += self.padded_data()
            for ref in self._refs:
                repr_ += ref.depth.to_bytes(2, "big")
            for ref in self._refs:
                repr_ += ref.hash()
            self._hash = hashlib.sha256(bytes(repr_)).digest()
        return self._hash

    def hex_data(self) -> str:
        """Fift-style hex dump of the data bits (``_`` marks a completion tag)."""
        if self._length % 4 == 0:
            digits = self._length // 4
            return f"{self._bits:0{digits}x}" if digits else ""
        pad = 4 - self._length % 4
        value = (self._bits << pad) | (1 << (pad - 1))
        digits = (self._length + pad) // 4
        return f"{value:0{digits}x}_"

    # ------------------------------------------------------------------
    # Parsing / serialization helpers
    # ------------------------------------------------------------------

    def begin_parse(self) -> Slice:
        return Slice(self)

    def to_boc(self, *, has_idx: bool = False, has_crc32c: bool = True) -> bytes:
        from .boc import serialize_boc

        return serialize_boc(self, has_idx=has_idx, has_crc32c=has_crc32c)

    @staticmethod
    def from_boc(data: bytes) -> Cell:
        """Decode a bag of cells and return its first root."""
        from .boc import deserialize_boc

        roots = deserialize_boc(data)
        if not roots:
            raise MalformedCell("Bag of cells has no roots")
        return roots[0]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Cell):
            return NotImplemented
        return self.hash() == other.hash()

    def __hash__(self) -> int:
        return hash(self.hash())

    def __repr__(self) -> str:
        return self._dump(0)

    def _dump(self, indent: int) -> str:
        line = " " * indent + f"x{{{self.hex_data()}}}"
        children = [ref._dump(indent + 1) for ref in self._refs]
        return "\n".join([line, *children])


Cell.EMPTY = Cell()


def begin_cell() -> Builder:
    return Builder()


class Builder:
    """Mutable cell writer; every ``store_*`` call returns the builder itself."""

    def __init__(self) -> None:
        self._bits = 0
        self._length = 0
        self._refs: list[Cell] = []

    @property
    def bit_length(self) -> int:
        return self._length

    @property
    def available_bits(self) -> int:
        return MAX_BITS - self._length

    @property
    def available_refs(self) -> int:
        return MAX_REFS - len(self._refs)

    def _append(self, value: int, length: int) -> Builder:
        if self._length + length > MAX_BITS:
            raise MalformedCell(
                f"Builder overflow: {self._length} + {length} > {MAX_BITS} bits"
            )
        self._bits = (self._bits << length) | value
        self._length += length
        return self

    def store_bit(self, bit: bool | int) -> Builder:
        return self._append(1 if bit else 0, 1)

    def store_uint(self, value: int, bits: int) -> Builder:
        if bits < 0:
            raise ValueError(f"Invalid bit width: {bits}")
        if value < 0 or value >> bits:
            raise ValueError(f"Value {value} does not fit in {bits} unsigned bits")
        return self._append(value, bits)

    def store_int(self, value: int, bits: int) -> Builder:
        if bits <= 0:
            raise ValueError(f"Invalid bit width: {bits}")
        bound = 1 << (bits - 1)
        if not -bound <= value < bound:
            raise ValueError(f"Value {value} does not fit in {bits} signed bits")
        return self._append(value & ((1 << bits) - 1), bits)

    def store_buffer(self, data: bytes, size: int | None = None) -> Builder:
        if size is not None and len(data) != size:
            raise ValueError(f"Expected {size} bytes, got {len(data)}")
        return self._append(int.from_bytes(data, "big"), len(data) * 8)

    def store_var_uint(self, value: int, limit_bytes: int) -> Builder:
        header = (limit_bytes - 1).bit_length()
        if value == 0:
            return self.store_uint(0, header)
        size = (value.bit_length() + 7) // 8
        if value < 0 or size >= limit_bytes:
            raise ValueError(f"Value {value} does not fit in VarUInteger {limit_bytes}")
        self.store_uint(size, header)
        return self.store_uint(value, size * 8)

    def store_coins(self, amount: int) -> Builder:
        return self.store_var_uint(amount, 16)

    def store_address(self, address: Address | None) -> Builder:
        if address is None:
            return self.store_uint(0, 2)
        self.store_uint(2, 2)
        self.store_bit(0)
        self.store_int(address.workchain, 8)
        return self.store_buffer(address.hash_part, 32)

    def store_ref(self, cell: Cell) -> Builder:
        if len(self._refs) >= MAX_REFS:
            raise MalformedCell(f"Builder overflow: more than {MAX_REFS} refs")
        self._refs.append(cell)
        return self

    def store_maybe_ref(self, cell: Cell | None) -> Builder:
        if cell is None:
            return self.store_bit(0)
        self.store_bit(1)
        return self.store_ref(cell)

    def store_dict(self, dictionary: Dictionary[Any] | None) -> Builder:
        if dictionary is None or len(dictionary) == 0:
            return self.store_bit(0)
        dictionary.store(self)
        return self

    def store_slice(self, source: Slice) -> Builder:
        bits_left = source.remaining_bits
        self._append(source.preload_uint(bits_left), bits_left)
        for ref in source.remaining_ref_cells():
            self.store_ref(ref)
        return self

    def store_cell(self, cell: Cell) -> Builder:
        return self.store_slice(cell.begin_parse())

    def end_cell(self) -> Cell:
        return Cell(self._bits, self._length, self._refs)


class Slice:
    """Read cursor over a cell; any overrun raises :class:`MalformedCell`."""

    def __init__(self, cell: Cell) -> None:
        self._cell = cell
        self._offset = 0
        self._ref_offset = 0

    @property
    def remaining_bits(self) -> int:
        return self._cell._length - self._offset

    @property
    def remaining_refs(self) -> int:
        return len(self._cell._refs) - self._ref_offset

    def _read(self, bits: int, advance: bool = True) -> int:
        if bits < 0:
            raise ValueError(f"Invalid bit width: {bits}")
        if bits > self.remaining_bits:
            raise MalformedCell(
                f"Cell underflow: need {bits} bits, {self.remaining_bits} left"
            )
        shift = self._cell._length - self._offset - bits
        value = (self._cell._bits >> shift) & ((1 << bits) - 1)
        if advance:
            self._offset += bits
        return value

    def skip(self, bits: int) -> Slice:
        self._read(bits)
        return self

    def load_bit(self) -> bool:
        return self._read(1) == 1

    def preload_uint(self, bits: int) -> int:
        return self._read(bits, advance=False)

    def load_uint(self, bits: int) -> int:
        return self._read(bits)

    def load_int(self, bits: int) -> int:
        value = self._read(bits)
        if bits and value >> (bits - 1):
            value -= 1 << bits
        return value

    def load_buffer(self, size: int) -> bytes:
        return self._read(size * 8).to_bytes(size, "big")

    def load_var_uint(self, limit_bytes: int) -> int:
        size = self.load_uint((limit_bytes - 1).bit_length())
        return self.load_uint(size * 8)

    def load_coins(self) -> int:
        return self.load_var_uint(16)

    def load_maybe_address(self) -> Address | None:
        from .address import Address

        tag = self.load_uint(2)
        if tag == 0:
            return None
        if tag != 2:
            raise MalformedCell(f"Unsupported address tag: {tag:02b}")
        if self.load_bit():
            raise MalformedCell("Anycast addresses are not supported")
        workchain = self.load_int(8)
        return Address(workchain, self.load_buffer(32))

    def load_address(self) -> Address:
        address = self.load_maybe_address()
        if address is None:
            raise MalformedCell("Expected an address, got addr_none")
        return address

    def load_ref(self) -> Cell:
        if self.remaining_refs <= 0:
            raise MalformedCell("Cell underflow: no references left")
        ref = self._cell._refs[self._ref_offset]
        self._ref_offset += 1
        return ref

    def load_maybe_ref(self) -> Cell | None:
        return self.load_ref() if self.load_bit() else None

    def load_dict(self, key_bits: int, value: DictionaryValue[Any]) -> Dictionary[Any]:
        from .dictionary import Dictionary

        return Dictionary.load(key_bits, value, self)

    def remaining_ref_cells(self) -> tuple[Cell, ...]:
        return self._cell._refs[self._ref_offset:]

    def end_parse(self) -> None:
        if self.remaining_bits or self.remaining_refs:
            raise MalformedCell(
                f"Unexpected trailing data: {self.remaining_bits} bits, "
                f"{self.remaining_refs} refs"
            )

    def to_cell(self) -> Cell:
        """Copy the unread remainder into a fresh cell (the cursor is unchanged)."""
        bits_left = self.remaining_bits
        return Cell(
            self.preload_uint(bits_left), bits_left, self.remaining_ref_cells()
        )
