"""Short code generation and URL hygiene helpers.

All short codes are drawn from the same 62-symbol alphabet (digits, lowercase,
uppercase, in that order), so random, content-derived and sequential codes
share one namespace and one unique constraint.

Strategies
==========
::

    random       secure bytes ──► byte % 62 ──► "aZ3k9Q"
    hash         md5(url) ──► digest[i] % 62 ──► same url, same code
    sequential   counter ──► base62 ──► left-pad with "0" ──► "00001c"

How to Use
===========
**Random codes**::
    code = generate_short_code(6)

**Sequential ids**::
    encode_base62(12345)      # "3d7"
    decode_base62("3d7")      # 12345

**URL input**::
    if is_valid_url(raw):
        url = normalize_url(raw)

Key Behaviours
===============
- Random codes come from ``secrets.token_bytes`` unless another byte source is
  injected; each byte maps to one symbol by ``byte % 62``.
- ``deterministic_code`` is a pure function of the URL; distinct URLs may
  collide and the caller must handle it.
- ``normalize_url`` is idempotent for every input string.
"""

import hashlib
import re
import secrets
import string
from collections.abc import Callable
from urllib.parse import urlsplit

import validators

__all__ = [
    "BASE62_ALPHABET",
    "generate_short_code",
    "encode_base62",
    "decode_base62",
    "sequential_code",
    "deterministic_code",
    "is_valid_url",
    "normalize_url",
]

BASE62_ALPHABET = string.digits + string.ascii_lowercase + string.ascii_uppercase
BASE62 = len(BASE62_ALPHABET)
DEFAULT_CODE_LENGTH = 6
# An MD5 digest has 16 bytes, one symbol per byte.
MAX_DETERMINISTIC_LENGTH = 16

_ALPHABET_INDEX = {symbol: index for index, symbol in enumerate(BASE62_ALPHABET)}
_SCHEME_PREFIX = re.compile(r"^https?://", re.IGNORECASE)
_ALLOWED_SCHEMES = frozenset({"http", "https"})


def generate_short_code(
    length: int = DEFAULT_CODE_LENGTH,
    random_bytes: Callable[[int], bytes] = secrets.token_bytes,
) -> str:
    """Return ``length`` symbols drawn from a secure random byte stream.

    Args:
        length: Number of symbols in the code (must be positive).
        random_bytes: Byte source, ``secrets.token_bytes`` by default.

    Returns:
        str: Random short code.
    """
    if not isinstance(length, int) or length <= 0:
        raise ValueError(f"length must be a positive integer, got {length!r}")
    data = random_bytes(length)
    if len(data) < length:
        raise ValueError(f"random source returned {len(data)} bytes, expected {length}")
    return "".join(BASE62_ALPHABET[byte % BASE62] for byte in data[:length])


def encode_base62(number: int) -> str:
    """Encode a non-negative integer, most significant symbol first.

    Example:
        >>> encode_base62(12345)
        '3d7'
    """
    if number < 0:
        raise ValueError("Number must be non-negative")

    if number == 0:
        return BASE62_ALPHABET[0]

    result = []
    while number > 0:
        number, remainder = divmod(number, BASE62)
        result.append(BASE62_ALPHABET[remainder])

    return "".join(result[::-1])


def decode_base62(code: str) -> int:
    """Decode a base62 string produced by :func:`encode_base62`."""
    if not code:
        raise ValueError("Cannot decode an empty code")

    number = 0
    for symbol in code:
        try:
            number = number * BASE62 + _ALPHABET_INDEX[symbol]
        except KeyError:
            raise ValueError(f"Invalid base62 symbol {symbol!r} in {code!r}") from None
    return number


def sequential_code(number: int, length: int = DEFAULT_CODE_LENGTH) -> str:
    return encode_base62(number).rjust(length, BASE62_ALPHABET[0])


def deterministic_code(url: str, length: int = DEFAULT_CODE_LENGTH) -> str:
    """Fold the MD5 digest of ``url`` into a ``length``-symbol code."""
    if not 0 < length <= MAX_DETERMINISTIC_LENGTH:
        raise ValueError(f"length must be between 1 and {MAX_DETERMINISTIC_LENGTH}, got {length!r}")
    digest = hashlib.md5(url.encode("utf-8"), usedforsecurity=False).digest()
    return "".join(BASE62_ALPHABET[byte % BASE62] for byte in digest[:length])


def is_valid_url(url: object) -> bool:
    """True for an absolute http(s) URL, ignoring surrounding whitespace."""
    if not isinstance(url, str):
        return False
    candidate = url.strip()
    if not candidate:
        return False
    try:
        scheme = urlsplit(candidate).scheme.lower()
    except ValueError:
        return False
    if scheme not in _ALLOWED_SCHEMES:
        return False
    return bool(validators.url(candidate, simple_host=True, strict_query=False))


def normalize_url(url: str) -> str:
    """Trim, default the scheme to https and drop the trailing slash.

    Trailing slashes are removed together with any whitespace they expose,
    so feeding the result back in returns it unchanged.
    """
    normalized = url.strip()
    if not _SCHEME_PREFIX.match(normalized):
        normalized = f"https://{normalized}"
    scheme, separator, rest = normalized.partition("://")
    while (trimmed := rest.rstrip("/").rstrip()) != rest:
        rest = trimmed
    return f"{scheme}{separator}{rest}"
