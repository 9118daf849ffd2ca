"""Bag-of-cells (BoC) wire format."""
from __future__ import annotations

from ..errors import MalformedCell
from .cell import Cell

BOC_GENERIC = 0xB5EE9C72
BOC_INDEXED = 0x68FF65F3
BOC_INDEXED_CRC32C = 0xACC3A728


def _make_crc32c_table() -> tuple[int, ...]:
    table = []
    for byte in range(256):
        crc = byte
        for _ in range(8):
            crc = (crc >> 1) ^ 0x82F63B78 if crc & 1 else crc >> 1
        table.append(crc)
    return tuple(table)


_CRC32C_TABLE = _make_crc32c_table()


def crc32c(data: bytes) -> int:
    """CRC-32C (Castagnoli) checksum used as the BoC trailer."""
    crc = 0xFFFFFFFF
    for byte in data:
        crc = _CRC32C_TABLE[(crc ^ byte) & 0xFF] ^ (crc >> 8)
    return crc ^ 0xFFFFFFFF


def _topological_order(root: Cell) -> list[Cell]:
    """Root first; every cell precedes the cells it references."""
    order: list[Cell] = []
    seen: set[bytes] = set()

    def visit(cell: Cell) -> None:
        digest = cell.hash()
        if digest in seen:
            return
        seen.add(digest)
        for ref in reversed(cell.refs):
            visit(ref)
        order.append(cell)

    visit(root)
    order.reverse()
    return order


def _byte_size(value: int) -> int:
    return max((value.bit_length() + 7) // 8, 1)


def serialize_boc(
    root: Cell, *, has_idx: bool = False, has_crc32c: bool = True
) -> bytes:
    """Serialize a single-root cell tree; identical subtrees are stored once."""
    cells = _topological_order(root)
    index = {cell.hash(): i for i, cell in enumerate(cells)}
    size_bytes = _byte_size(len(cells))

    payloads: list[bytes] = []
    offsets: list[int] = []
    total = 0
    for cell in cells:
        body = bytearray(cell.descriptors())
        body += cell.padded_data()
        for ref in cell.refs:
            body += index[ref.hash()].to_bytes(size_bytes, "big")
        payloads.append(bytes(body))
        total += len(body)
        offsets.append(total)
    offset_bytes = _byte_size(total)

    out = bytearray(BOC_GENERIC.to_bytes(4, "big"))
    flags = (0x80 if has_idx else 0) | (0x40 if has_crc32c else 0) | size_bytes
    out.append(flags)
    out.append(offset_bytes)
    out += len(cells).to_bytes(size_bytes, "big")
    out += (1).to_bytes(size_bytes, "big")
    out += (0).to_bytes(size_bytes, "big")
    out += total.to_bytes(offset_bytes, "big")
    out += (0).to_bytes(size_bytes, "big")
    if has_idx:
        for offset in offsets:
            out += offset.to_bytes(offset_bytes, "big")
    for body in payloads:
        out += body
    if has_crc32c:
        out += crc32c(bytes(out)).to_bytes(4, "little")
    return bytes(out)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self.offset = 0

    def take(self, size: int) -> bytes:
        if self.offset + size > len(self._data):
            raise MalformedCell("Bag of cells is truncated")
        chunk = self._data[self.offset:self.offset + size]
        self.offset += size
        return chunk

    def uint(self, size: int) -> int:
        return int.from_bytes(self.take(size), "big")


def deserialize_boc(data: bytes) -> list[Cell]:
    """Parse a bag of cells and return its root cells."""
    reader = _Reader(data)
    magic = reader.uint(4)

    if magic == BOC_GENERIC:
        flags = reader.uint(1)
        has_idx = bool(flags & 0x80)
        has_crc = bool(flags & 0x40)
        size_bytes = flags & 0x07
        offset_bytes = reader.uint(1)
        cell_count = reader.uint(size_bytes)
        root_count = reader.uint(size_bytes)
        reader.uint(size_bytes)  # absent
        total = reader.uint(offset_bytes)
        roots = [reader.uint(size_bytes) for _ in range(root_count)]
    elif magic in (BOC_INDEXED, BOC_INDEXED_CRC32C):
        has_idx = True
        has_crc = magic == BOC_INDEXED_CRC32C
        size_bytes = reader.uint(1)
        offset_bytes = reader.uint(1)
        cell_count = reader.uint(size_bytes)
        reader.uint(size_bytes)  # roots
        reader.uint(size_bytes)  # absent
        total = reader.uint(offset_bytes)
        roots = [0]
    else:
        raise MalformedCell(f"Unknown bag-of-cells magic 0x{magic:08x}")

    if size_bytes == 0 or size_bytes > 4:
        raise MalformedCell(f"Invalid reference size: {size_bytes}")
    if has_idx:
        reader.take(cell_count * offset_bytes)
    cell_data = _Reader(reader.take(total))
    if has_crc:
        end = reader.offset
        trailer = reader.take(4)
        if crc32c(data[:end]) != int.from_bytes(trailer, "little"):
            raise MalformedCell("Bag-of-cells CRC32C mismatch")

    raw: list[tuple[int, int, list[int]]] = []
    for i in range(cell_count):
        d1, d2 = cell_data.take(2)
        if d1 & 0x08:
            raise MalformedCell("Exotic cells are not supported")
        if d1 & 0x10:
            raise MalformedCell("Cells with stored hashes are not supported")
        ref_count = d1 & 0x07
        if ref_count > 4:
            raise MalformedCell(f"Cell {i} declares {ref_count} references")
        size = (d2 + 1) // 2
        value = int.from_bytes(cell_data.take(size), "big")
        length = size * 8
        if d2 % 2:
            if value == 0:
                raise MalformedCell(f"Cell {i} is missing its completion tag")
            trailing = (value & -value).bit_length() - 1
            value >>= trailing + 1
            length -= trailing + 1
        refs = [cell_data.uint(size_bytes) for _ in range(ref_count)]
        for ref in refs:
            if ref <= i or ref >= cell_count:
                raise MalformedCell(f"Cell {i} has an invalid reference {ref}")
        raw.append((value, length, refs))

    built: list[Cell | None] = [None] * cell_count
    for i in range(cell_count - 1, -1, -1):
        value, length, refs = raw[i]
        built[i] = Cell(value, length, [built[r] for r in refs])  # type: ignore[misc]

    result: list[Cell] = []
    for root in roots:
        if root >= cell_count:
            raise MalformedCell(f"Invalid root index {root}")
        result.append(built[root])  # type: ignore[arg-type]
    return result
