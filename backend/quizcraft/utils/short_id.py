"""Reversible short identifiers for public quiz URLs.

A quiz UUID is rendered as a fixed-width base58 string (no 0/O/I/l
look-alikes) through `shortuuid` and decoded back to the canonical
hyphenated, lower-case UUID string. Only full-width ids decode, so each
quiz has exactly one short id.
"""

import uuid

import shortuuid

ALPHABET = "123456789abcdefghijkmnopqrstuvwxyzABCDEFGHJKLMNPQRSTUVWXYZ"
# 58**22 > 2**128, so every UUID fits in 22 digits
SHORT_ID_LENGTH = 22

_translator = shortuuid.ShortUUID(alphabet=ALPHABET)


def encode_uuid(value: str) -> str:
    """Encode a UUID string as a 22 character base58 id."""
    try:
        parsed = uuid.UUID(str(value))
    except (ValueError, AttributeError, TypeError) as exc:
        raise ValueError(f"invalid uuid: {value!r}") from exc
    return _translator.encode(parsed, pad_length=SHORT_ID_LENGTH)


def decode_uuid(short_id: str) -> str:
    """Decode a short id produced by `encode_uuid` back to its UUID string.

    Raises ValueError for ids of the wrong width, with characters outside
    the alphabet, or that overflow 128 bits.
    """
    if not isinstance(short_id, str) or len(short_id) != SHORT_ID_LENGTH:
        raise ValueError(f"invalid short id: {short_id!r}")
    try:
        return str(_translator.decode(short_id))
    except ValueError as exc:
        raise ValueError(f"invalid short id: {short_id!r}") from exc
