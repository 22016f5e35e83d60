"""
Reversible mapping between raw bytes and printable unicode characters.

Byte-level BPE vocabularies are keyed by these characters rather than by raw
bytes, so every UTF-8 byte of the input is re-expressed as one character from
this table before merging. The table must match the one the vocabulary was
built with bit for bit.
"""

from functools import lru_cache
from typing import Dict


@lru_cache(maxsize=None)
def bytes_to_unicode() -> Dict[int, str]:
    """Return the byte -> unicode character table.

    Printable ASCII and most of Latin-1 map to themselves; the remaining 68
    byte values (control characters, space, NBSP, soft hyphen) are shifted to
    code points starting at U+0100 in ascending byte order.
    """
    bs = (
        list(range(ord("!"), ord("~") + 1))
        + list(range(ord("¡"), ord("¬") + 1))
        + list(range(ord("®"), ord("ÿ") + 1))
    )
    cs = bs[:]
    n = 0
    for b in range(256):
        if b not in bs:
            bs.append(b)
            cs.append(256 + n)
            n += 1
    return {b: chr(c) for b, c in zip(bs, cs)}


@lru_cache(maxsize=None)
def unicode_to_bytes() -> Dict[str, int]:
    """Return the inverse of :func:`bytes_to_unicode`."""
    return {c: b for b, c in bytes_to_unicode().items()}


def encode_bytes(text: str) -> str:
    """Re-express the UTF-8 bytes of ``text`` as byte-unicode characters."""
    table = bytes_to_unicode()
    return "".join(table[b] for b in text.encode("utf-8"))


def decode_bytes(symbols: str) -> bytes:
    """Map byte-unicode characters back to raw bytes.

    Characters outside the table are dropped.
    """
    table = unicode_to_bytes()
    return bytes(table[c] for c in symbols if c in table)
