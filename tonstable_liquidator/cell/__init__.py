"""Binary cell codec: cells, addresses, dictionaries, bags of cells and stacks."""
from .address import Address, address_cell, address_hash
from .boc import crc32c, deserialize_boc, serialize_boc
from .cell import Builder, Cell, Slice, begin_cell
from .dictionary import Dictionary, DictionaryValue, Values
from .stack import StackItem, TupleReader, parse_tuple, serialize_tuple

__all__ = [
    "Address",
    "Builder",
    "Cell",
    "Dictionary",
    "DictionaryValue",
    "Slice",
    "StackItem",
    "TupleReader",
    "Values",
    "address_cell",
    "address_hash",
    "begin_cell",
    "crc32c",
    "deserialize_boc",
    "parse_tuple",
    "serialize_boc",
    "serialize_tuple",
]
