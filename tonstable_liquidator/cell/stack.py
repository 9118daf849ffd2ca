"""TVM stack values: the get-method wire format and serialized tuples."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from ..errors import MalformedCell
from .address import Address
from .cell import Builder, Cell, Slice

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1


@dataclass(frozen=True)
class StackItem:
    """One TVM stack entry.

    ``kind`` is one of ``null``, ``int``, ``nan``, ``cell``, ``slice``,
    ``builder`` or ``tuple``; ``value`` holds an ``int``, a :class:`Cell`
    or a tuple of items accordingly.
    """

    kind: str
    value: Any = field(default=None)

    @classmethod
    def null(cls) -> StackItem:
        return cls("null")

    @classmethod
    def of_int(cls, value: int) -> StackItem:
        return cls("int", value)

    @classmethod
    def of_cell(cls, cell: Cell) -> StackItem:
        return cls("cell", cell)

    @classmethod
    def of_slice(cls, cell: Cell) -> StackItem:
        return cls("slice", cell)

    @classmethod
    def of_tuple(cls, items: Sequence[StackItem]) -> StackItem:
        return cls("tuple", tuple(items))


# ----------------------------------------------------------------------
# Serialization
# ----------------------------------------------------------------------


def _write_item(item: StackItem, builder: Builder) -> None:
    if item.kind == "null":
        builder.store_uint(0x00, 8)
    elif item.kind == "int":
        if _INT64_MIN <= item.value <= _INT64_MAX:
            builder.store_uint(0x01, 8)
            builder.store_int(item.value, 64)
        else:
            builder.store_uint(0x0100, 15)
            builder.store_int(item.value, 257)
    elif item.kind == "nan":
        builder.store_int(0x02FF, 16)
    elif item.kind == "cell":
        builder.store_uint(0x03, 8)
        builder.store_ref(item.value)
    elif item.kind == "slice":
        cell: Cell = item.value
        builder.store_uint(0x04, 8)
        builder.store_uint(0, 10)
        builder.store_uint(cell.bit_length, 10)
        builder.store_uint(0, 3)
        builder.store_uint(len(cell.refs), 3)
        builder.store_ref(cell)
    elif item.kind == "builder":
        builder.store_uint(0x05, 8)
        builder.store_ref(item.value)
    elif item.kind == "tuple":
        head: Cell | None = None
        tail: Cell | None = None
        for i, child in enumerate(item.value):
            head, tail = tail, head
            if i > 1:
                head = Builder().store_ref(tail).store_ref(head).end_cell()  # type: ignore[arg-type]
            entry = Builder()
            _write_item(child, entry)
            tail = entry.end_cell()
        builder.store_uint(0x07, 8)
        builder.store_uint(len(item.value), 16)
        if head is not None:
            builder.store_ref(head)
        if tail is not None:
            builder.store_ref(tail)
    else:
        raise ValueError(f"Unsupported stack item kind: {item.kind}")


def _write_tail(items: Sequence[StackItem], builder: Builder) -> None:
    if items:
        rest = Builder()
        _write_tail(items[:-1], rest)
        builder.store_ref(rest.end_cell())
        _write_item(items[-1], builder)


def serialize_tuple(items: Sequence[StackItem]) -> Cell:
    """Serialize a stack (``vm_stack``): 24-bit depth then the cons list."""
    builder = Builder()
    builder.store_uint(len(items), 24)
    _write_tail(list(items), builder)
    return builder.end_cell()


# ----------------------------------------------------------------------
# Parsing
# ----------------------------------------------------------------------


def _read_item(source: Slice) -> StackItem:
    kind = source.load_uint(8)
    if kind == 0x00:
        return StackItem.null()
    if kind == 0x01:
        return StackItem.of_int(source.load_int(64))
    if kind == 0x02:
        if source.load_uint(7) == 0:
            return StackItem.of_int(source.load_int(257))
        source.load_bit()
        return StackItem("nan")
    if kind == 0x03:
        return StackItem.of_cell(source.load_ref())
    if kind == 0x04:
        start_bits = source.load_uint(10)
        end_bits = source.load_uint(10)
        start_refs = source.load_uint(3)
        end_refs = source.load_uint(3)
        if end_bits < start_bits or end_refs < start_refs:
            raise MalformedCell("Slice stack item has an inverted window")
        inner = source.load_ref().begin_parse()
        inner.skip(start_bits)
        bits = inner.load_uint(end_bits - start_bits)
        for _ in range(start_refs):
            inner.load_ref()
        refs = [inner.load_ref() for _ in range(end_refs - start_refs)]
        return StackItem.of_slice(Cell(bits, end_bits - start_bits, refs))
    if kind == 0x05:
        return StackItem("builder", source.load_ref())
    if kind == 0x07:
        length = source.load_uint(16)
        items: list[StackItem] = []
        if length > 1:
            head = source.load_ref().begin_parse()
            tail = source.load_ref().begin_parse()
            items.insert(0, _read_item(tail))
            for _ in range(length - 2):
                node = head
                head = node.load_ref().begin_parse()
                tail = node.load_ref().begin_parse()
                items.insert(0, _read_item(tail))
            items.insert(0, _read_item(head))
        elif length == 1:
            items.append(_read_item(source.load_ref().begin_parse()))
        return StackItem.of_tuple(items)
    raise MalformedCell(f"Unsupported stack item tag 0x{kind:02x}")


def parse_tuple(cell: Cell) -> list[StackItem]:
    """Parse a serialized stack; the first returned item is the deepest."""
    items: list[StackItem] = []
    source = cell.begin_parse()
    depth = source.load_uint(24)
    for _ in range(depth):
        rest = source.load_ref()
        items.insert(0, _read_item(source))
        source = rest.begin_parse()
    return items


class TupleReader:
    """Sequential typed reader over get-method results."""

    def __init__(self, items: Sequence[StackItem]) -> None:
        self._items = list(items)

    @property
    def remaining(self) -> int:
        return len(self._items)

    def pop(self) -> StackItem:
        if not self._items:
            raise MalformedCell("Stack underflow")
        return self._items.pop(0)

    def read_int(self) -> int:
        item = self.pop()
        if item.kind != "int":
            raise MalformedCell(f"Expected an int stack item, got {item.kind}")
        return item.value

    def read_cell_opt(self) -> Cell | None:
        item = self.pop()
        if item.kind == "null":
            return None
        if item.kind not in ("cell", "slice", "builder"):
            raise MalformedCell(f"Expected a cell stack item, got {item.kind}")
        return item.value

    def read_cell(self) -> Cell:
        cell = self.read_cell_opt()
        if cell is None:
            raise MalformedCell("Expected a cell stack item, got null")
        return cell

    def read_address(self) -> Address:
        return self.read_cell().begin_parse().load_address()

    def read_tuple_opt(self) -> TupleReader | None:
        item = self.pop()
        if item.kind == "null":
            return None
        if item.kind != "tuple":
            raise MalformedCell(f"Expected a tuple stack item, got {item.kind}")
        return TupleReader(item.value)

    def read_lisp_list(self) -> list[StackItem]:
        """Read a ``(head, (head, ... null))`` list into a flat list."""
        result: list[StackItem] = []
        node = self.read_tuple_opt()
        while node is not None:
            if node.remaining != 2:
                raise MalformedCell("Lisp list nodes must be (head, tail) pairs")
            result.append(node.pop())
            node = node.read_tuple_opt()
        return result
