"""Short code generation, base62 and URL hygiene tests."""

import pytest

from shortener.codegen import (
    BASE62_ALPHABET,
    decode_base62,
    deterministic_code,
    encode_base62,
    generate_short_code,
    is_valid_url,
    normalize_url,
    sequential_code,
)

VALID_URLS = [
    "https://www.google.com",
    "http://example.com/path/to/page",
    "https://example.com/search?q=python&page=2",
    "https://sub.domain.example.org:8443/a/b/",
    "https://example.com/#section",
]


def test_alphabet_order() -> None:
    assert len(BASE62_ALPHABET) == 62
    assert BASE62_ALPHABET.startswith("0123456789abcdef")
    assert BASE62_ALPHABET.endswith("XYZ")


def test_generate_default_length_and_alphabet() -> None:
    code = generate_short_code()
    assert len(code) == 6
    assert all(symbol in BASE62_ALPHABET for symbol in code)


@pytest.mark.parametrize("length", [1, 8, 12])
def test_generate_custom_length(length: int) -> None:
    assert len(generate_short_code(length)) == length


def test_generate_codes_are_distinct() -> None:
    codes = {generate_short_code() for _ in range(1000)}
    assert len(codes) == 1000


def test_generate_maps_bytes_modulo_alphabet() -> None:
    code = generate_short_code(4, random_bytes=lambda n: bytes([0, 61, 62, 255]))
    assert code == "0Z07"


def test_generate_with_constant_source_is_constant() -> None:
    zeros = lambda n: bytes(n)  # noqa: E731
    assert generate_short_code(6, random_bytes=zeros) == "000000"


@pytest.mark.parametrize("length", [0, -3])
def test_generate_rejects_non_positive_length(length: int) -> None:
    with pytest.raises(ValueError):
        generate_short_code(length)


def test_generate_rejects_short_random_source() -> None:
    with pytest.raises(ValueError):
        generate_short_code(6, random_bytes=lambda n: b"\x01")


@pytest.mark.parametrize(
    "number,expected",
    [(0, "0"), (1, "1"), (61, "Z"), (62, "10"), (12345, "3d7"), (999999, "4c91")],
)
def test_encode_base62(number: int, expected: str) -> None:
    assert encode_base62(number) == expected


def test_encode_base62_negative() -> None:
    with pytest.raises(ValueError, match="non-negative"):
        encode_base62(-1)


@pytest.mark.parametrize("number", [0, 61, 3844, 56_800_235_583, 2**200])
def test_decode_inverts_encode(number: int) -> None:
    assert decode_base62(encode_base62(number)) == number


@pytest.mark.parametrize("code", ["", "abc-1", "héllo"])
def test_decode_rejects_invalid_input(code: str) -> None:
    with pytest.raises(ValueError):
        decode_base62(code)


def test_sequential_code_is_zero_padded() -> None:
    assert sequential_code(1) == "000001"
    assert sequential_code(62) == "000010"
    assert sequential_code(62**7, length=6) == "10000000"


def test_deterministic_code_is_pure() -> None:
    url = "https://example.com/some/page"
    first = deterministic_code(url)
    assert first == deterministic_code(url)
    assert len(first) == 6
    assert all(symbol in BASE62_ALPHABET for symbol in first)
    assert deterministic_code(url, 10).startswith(first)


def test_deterministic_code_differs_between_urls() -> None:
    assert deterministic_code("https://example.com/a") != deterministic_code("https://example.com/b")


@pytest.mark.parametrize("length", [0, 17])
def test_deterministic_code_rejects_length(length: int) -> None:
    with pytest.raises(ValueError):
        deterministic_code("https://example.com", length)


@pytest.mark.parametrize("url", VALID_URLS)
def test_valid_urls(url: str) -> None:
    assert is_valid_url(url)


@pytest.mark.parametrize(
    "url",
    [
        "",
        None,
        42,
        "not-a-url",
        "example.com",
        "ftp://files.example.com/pub",
        "javascript:alert(1)",
        "https://",
        "http://exa mple.com",
    ],
)
def test_invalid_urls(url: object) -> None:
    assert not is_valid_url(url)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("https://example.com/", "https://example.com"),
        ("  https://example.com/page  ", "https://example.com/page"),
        ("example.com", "https://example.com"),
        ("http://example.com///", "http://example.com"),
        ("HTTP://Example.com/a/", "HTTP://Example.com/a"),
        ("https://example.com/?q=1", "https://example.com/?q=1"),
    ],
)
def test_normalize_url(raw: str, expected: str) -> None:
    assert normalize_url(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["", "/", " ", "https://", "https:// /", "a.com//", " x / / ", "ftp://a/", "https://example.com/a/ /"],
)
def test_normalize_url_is_idempotent(raw: str) -> None:
    once = normalize_url(raw)
    assert normalize_url(once) == once


@pytest.mark.parametrize("url", VALID_URLS)
def test_normalized_valid_url_stays_valid(url: str) -> None:
    assert is_valid_url(normalize_url(url))


def test_validation_ignores_surrounding_whitespace() -> None:
    assert is_valid_url("  https://example.com/page/  ")
    assert not is_valid_url("   ")


def test_validation_rejects_underscore_hosts() -> None:
    assert not is_valid_url("https://my_host.example.com/")
