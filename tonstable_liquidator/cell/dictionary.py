"""Canonical ``HashmapE`` dictionaries keyed by fixed-width unsigned integers.

The trie layout, including the choice between short, long and same labels,
follows the reference serializer exactly, so re-encoding a decoded
dictionary reproduces the original cells bit for bit.
"""
from __future__ import annotations

from typing import Callable, Generic, Iterable, Iterator, Mapping, TypeVar

from ..errors import MalformedCell
from .cell import Builder, Cell, Slice

V = TypeVar("V")


class DictionaryValue(Generic[V]):
    """Pair of callbacks that write and read one leaf value."""

    def __init__(
        self,
        store: Callable[[V, Builder], object],
        load: Callable[[Slice], V],
    ) -> None:
        self.store = store
        self.load = load


class Values:
    """Common leaf value codecs."""

    @staticmethod
    def cell() -> DictionaryValue[Cell]:
        return DictionaryValue(lambda v, b: b.store_ref(v), lambda s: s.load_ref())

    @staticmethod
    def uint(bits: int) -> DictionaryValue[int]:
        return DictionaryValue(
            lambda v, b: b.store_uint(v, bits), lambda s: s.load_uint(bits)
        )

    @staticmethod
    def coins() -> DictionaryValue[int]:
        return DictionaryValue(lambda v, b: b.store_coins(v), lambda s: s.load_coins())


class Dictionary(Generic[V]):
    """Ordered mapping from ``key_bits``-wide unsigned keys to values.

    Iteration is always in ascending key order, which is the trie's
    left-to-right order, regardless of insertion order.
    """

    def __init__(
        self,
        key_bits: int,
        value: DictionaryValue[V],
        items: Mapping[int, V] | Iterable[tuple[int, V]] | None = None,
    ) -> None:
        if key_bits <= 0:
            raise ValueError(f"Invalid key width: {key_bits}")
        self.key_bits = key_bits
        self.value = value
        self._items: dict[int, V] = {}
        if items is not None:
            pairs = items.items() if isinstance(items, Mapping) else items
            for key, val in pairs:
                self.set(key, val)

    # ------------------------------------------------------------------
    # Mapping API
    # ------------------------------------------------------------------

    def set(self, key: int, value: V) -> Dictionary[V]:
        if key < 0 or key >> self.key_bits:
            raise ValueError(f"Key {key} does not fit in {self.key_bits} bits")
        self._items[key] = value
        return self

    def get(self, key: int, default: V | None = None) -> V | None:
        return self._items.get(key, default)

    def delete(self, key: int) -> bool:
        return self._items.pop(key, None) is not None

    def __getitem__(self, key: int) -> V:
        return self._items[key]

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._items))

    def keys(self) -> list[int]:
        return sorted(self._items)

    def values(self) -> list[V]:
        return [self._items[k] for k in self.keys()]

    def items(self) -> list[tuple[int, V]]:
        return [(k, self._items[k]) for k in self.keys()]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Dictionary):
            return NotImplemented
        return self.key_bits == other.key_bits and self._items == other._items

    def __repr__(self) -> str:
        return f"Dictionary(key_bits={self.key_bits}, items={dict(self.items())!r})"

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def store(self, builder: Builder) -> None:
        """Write as ``HashmapE``: presence bit, then a ref to the root."""
        if not self._items:
            builder.store_bit(0)
            return
        root = Builder()
        self.store_direct(root)
        builder.store_bit(1)
        builder.store_ref(root.end_cell())

    def store_direct(self, builder: Builder) -> None:
        """Write the root ``Hashmap`` node inline (dictionary must be non-empty)."""
        if not self._items:
            raise ValueError("Cannot store an empty dictionary directly")
        entries = {
            format(key, f"0{self.key_bits}b"): val for key, val in self.items()
        }
        _write_edge(entries, self.key_bits, self.value, builder)

    def to_cell(self) -> Cell:
        builder = Builder()
        self.store_direct(builder)
        return builder.end_cell()

    @classmethod
    def load(
        cls, key_bits: int, value: DictionaryValue[V], source: Slice
    ) -> Dictionary[V]:
        """Read a ``HashmapE`` (presence bit + optional root ref)."""
        root = source.load_maybe_ref()
        return cls.load_direct(key_bits, value, root)

    @classmethod
    def load_direct(
        cls,
        key_bits: int,
        value: DictionaryValue[V],
        source: Slice | Cell | None,
    ) -> Dictionary[V]:
        """Read a root ``Hashmap`` node; ``None`` yields an empty dictionary."""
        result = cls(key_bits, value)
        if source is None:
            return result
        if isinstance(source, Cell):
            source = source.begin_parse()
        entries: list[tuple[int, V]] = []
        _parse_edge(source, key_bits, 0, value, entries)
        for key, val in entries:
            result._items[key] = val
        return result


# ----------------------------------------------------------------------
# Trie writer
# ----------------------------------------------------------------------


def _common_prefix(keys: list[str]) -> str:
    first, last = min(keys), max(keys)
    size = 0
    while size < len(first) and first[size] == last[size]:
        size += 1
    return first[:size]


def _is_same(label: str) -> bool:
    return len(label) <= 1 or label.count(label[0]) == len(label)


def _write_label(label: str, key_len: int, builder: Builder) -> None:
    width = key_len.bit_length()
    kind, best = "short", 2 * len(label) + 2
    long_len = 2 + width + len(label)
    if long_len < best:
        kind, best = "long", long_len
    if _is_same(label) and 3 + width < best:
        kind = "same"

    if kind == "short":
        builder.store_bit(0)
        for _ in label:
            builder.store_bit(1)
        builder.store_bit(0)
        for bit in label:
            builder.store_bit(bit == "1")
    elif kind == "long":
        builder.store_bit(1).store_bit(0)
        builder.store_uint(len(label), width)
        for bit in label:
            builder.store_bit(bit == "1")
    else:
        builder.store_bit(1).store_bit(1)
        builder.store_bit(label[0] == "1")
        builder.store_uint(len(label), width)


def _write_edge(
    entries: dict[str, V],
    key_len: int,
    value: DictionaryValue[V],
    builder: Builder,
) -> None:
    label = _common_prefix(list(entries))
    _write_label(label, key_len, builder)
    rest = key_len - len(label)
    if rest == 0:
        (leaf,) = entries.values()
        value.store(leaf, builder)
        return

    cut = len(label)
    left = {k[cut + 1:]: v for k, v in entries.items() if k[cut] == "0"}
    right = {k[cut + 1:]: v for k, v in entries.items() if k[cut] == "1"}
    for branch in (left, right):
        child = Builder()
        _write_edge(branch, rest - 1, value, child)
        builder.store_ref(child.end_cell())


# ----------------------------------------------------------------------
# Trie reader
# ----------------------------------------------------------------------


def _read_label(source: Slice, key_len: int) -> tuple[int, int]:
    """Return ``(label_length, label_bits)`` for the edge at ``source``."""
    if not source.load_bit():
        length = 0
        while source.load_bit():
            length += 1
            if length > key_len:
                raise MalformedCell("Dictionary label longer than remaining key")
        return length, source.load_uint(length)

    width = key_len.bit_length()
    if not source.load_bit():
        length = source.load_uint(width)
        if length > key_len:
            raise MalformedCell("Dictionary label longer than remaining key")
        return length, source.load_uint(length)

    bit = source.load_bit()
    length = source.load_uint(width)
    if length > key_len:
        raise MalformedCell("Dictionary label longer than remaining key")
    return length, ((1 << length) - 1) if bit else 0


def _parse_edge(
    source: Slice,
    key_len: int,
    prefix: int,
    value: DictionaryValue[V],
    out: list[tuple[int, V]],
) -> None:
    length, bits = _read_label(source, key_len)
    prefix = (prefix << length) | bits
    rest = key_len - length
    if rest == 0:
        out.append((prefix, value.load(source)))
        return

    # every leaf sits on its own path, so keys come out unique and ascending
    left = source.load_ref()
    right = source.load_ref()
    source.end_parse()
    _parse_edge(left.begin_parse(), rest - 1, prefix << 1, value, out)
    _parse_edge(right.begin_parse(), rest - 1, (prefix << 1) | 1, value, out)
