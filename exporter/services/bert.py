"""Decoder for ``application/bert`` bodies (Erlang external term format).

The management plugin can render its listings as BERT instead of JSON, which
is cheaper for the broker on large installations. Terms are normalized into
the same shapes the JSON API returns: proplists and maps become dicts,
binaries become strings, the atoms ``true``/``false`` become booleans and
``null``/``undefined``/``nil`` become ``None``.
"""

from __future__ import annotations

import struct
import zlib
from typing import Any

VERSION = 131

NEW_FLOAT = 70
COMPRESSED = 80
SMALL_INTEGER = 97
INTEGER = 98
FLOAT = 99
ATOM = 100
SMALL_TUPLE = 104
LARGE_TUPLE = 105
NIL = 106
STRING = 107
LIST = 108
BINARY = 109
SMALL_BIG = 110
LARGE_BIG = 111
SMALL_ATOM = 115
MAP = 116
ATOM_UTF8 = 118
SMALL_ATOM_UTF8 = 119

_ATOM_VALUES = {"true": True, "false": False, "null": None, "undefined": None, "nil": None}


class BertDecodeError(ValueError):
    """The body is not a well-formed external term."""


class Atom(str):
    pass


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def take(self, size: int) -> bytes:
        end = self.pos + size
        if end > len(self.data):
            raise BertDecodeError(f"truncated term at offset {self.pos}")
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def unpack(self, fmt: str) -> Any:
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))[0]

    def term(self) -> Any:
        tag = self.unpack(">B")
        if tag == SMALL_INTEGER:
            return self.unpack(">B")
        if tag == INTEGER:
            return self.unpack(">i")
        if tag == NEW_FLOAT:
            return self.unpack(">d")
        if tag == FLOAT:
            text = self.take(31).rstrip(b"\x00").decode("ascii")
            try:
                return float(text)
            except ValueError as exc:
                raise BertDecodeError(f"bad float {text!r}") from exc
        if tag in (ATOM, ATOM_UTF8):
            return Atom(self.take(self.unpack(">H")).decode(_atom_encoding(tag)))
        if tag in (SMALL_ATOM, SMALL_ATOM_UTF8):
            return Atom(self.take(self.unpack(">B")).decode(_atom_encoding(tag)))
        if tag == SMALL_TUPLE:
            return tuple(self.term() for _ in range(self.unpack(">B")))
        if tag == LARGE_TUPLE:
            return tuple(self.term() for _ in range(self.unpack(">I")))
        if tag == NIL:
            return []
        if tag == STRING:
            return self.take(self.unpack(">H")).decode("latin-1")
        if tag == LIST:
            items = [self.term() for _ in range(self.unpack(">I"))]
            tail = self.term()
            if tail != []:
                items.append(tail)
            return items
        if tag == BINARY:
            return self.take(self.unpack(">I"))
        if tag == SMALL_BIG:
            return self._big(self.unpack(">B"))
        if tag == LARGE_BIG:
            return self._big(self.unpack(">I"))
        if tag == MAP:
            arity = self.unpack(">I")
            return {_key(self.term()): self.term() for _ in range(arity)}
        raise BertDecodeError(f"unsupported term tag {tag} at offset {self.pos - 1}")

    def _big(self, size: int) -> int:
        sign = self.unpack(">B")
        value = int.from_bytes(self.take(size), "little")
        return -value if sign else value


def _atom_encoding(tag: int) -> str:
    return "utf-8" if tag in (ATOM_UTF8, SMALL_ATOM_UTF8) else "latin-1"


def _key(term: Any) -> Any:
    if isinstance(term, bytes):
        return term.decode("utf-8", errors="replace")
    if isinstance(term, (list, tuple, dict)):
        return repr(term)
    return term


def _is_proplist(items: list) -> bool:
    return bool(items) and all(
        isinstance(item, tuple)
        and len(item) == 2
        and isinstance(item[0], (Atom, bytes))
        for item in items
    )


def normalize(term: Any) -> Any:
    if isinstance(term, Atom):
        return _ATOM_VALUES.get(term, str(term))
    if isinstance(term, bytes):
        return term.decode("utf-8", errors="replace")
    if isinstance(term, dict):
        return {str(key): normalize(value) for key, value in term.items()}
    if isinstance(term, tuple):
        # BERT complex types: {bert, nil}, {bert, true}, {bert, dict, Proplist}
        if len(term) >= 2 and term[0] == "bert" and isinstance(term[1], Atom):
            if term[1] == "dict" and len(term) == 3:
                return normalize(list(term[2])) or {}
            if len(term) == 2 and term[1] in _ATOM_VALUES:
                return _ATOM_VALUES[term[1]]
        return [normalize(item) for item in term]
    if isinstance(term, list):
        if _is_proplist(term):
            return {str(_key(key)): normalize(value) for key, value in term}
        return [normalize(item) for item in term]
    return term


def decode(data: bytes) -> Any:
    """Decode one BERT-encoded body into JSON-like Python values."""
    if not data or data[0] != VERSION:
        raise BertDecodeError("missing external term format version byte")
    reader = _Reader(data)
    reader.pos = 1
    if data[1:2] == bytes([COMPRESSED]):
        reader.pos = 2
        size = reader.unpack(">I")
        try:
            inflated = zlib.decompress(data[reader.pos:])
        except zlib.error as exc:
            raise BertDecodeError(f"bad compressed term: {exc}") from exc
        if len(inflated) != size:
            raise BertDecodeError("compressed term size mismatch")
        reader = _Reader(inflated)
    term = reader.term()
    if reader.pos != len(reader.data):
        raise BertDecodeError("trailing bytes after term")
    return normalize(term)
