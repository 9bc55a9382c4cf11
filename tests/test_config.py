"""Settings validation tests."""

import pytest
from pydantic import ValidationError

from shortener.config import Settings
from shortener.enums import CodeStrategy


def test_defaults() -> None:
    settings = Settings()
    assert settings.SHORT_CODE_LENGTH == 6
    assert settings.MAX_CODE_ATTEMPTS == 5
    assert settings.CODE_STRATEGY == CodeStrategy.RANDOM


@pytest.mark.parametrize("length", [0, 21])
def test_short_code_length_must_fit_column(length: int) -> None:
    with pytest.raises(ValidationError):
        Settings(SHORT_CODE_LENGTH=length)


def test_short_code_length_upper_bound() -> None:
    assert Settings(SHORT_CODE_LENGTH=20).SHORT_CODE_LENGTH == 20


def test_max_code_attempts_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Settings(MAX_CODE_ATTEMPTS=0)


def test_hash_strategy_limits_code_length() -> None:
    with pytest.raises(ValidationError):
        Settings(CODE_STRATEGY="hash", SHORT_CODE_LENGTH=18)

    assert Settings(CODE_STRATEGY="hash", SHORT_CODE_LENGTH=16).SHORT_CODE_LENGTH == 16
    assert Settings(CODE_STRATEGY="random", SHORT_CODE_LENGTH=18).SHORT_CODE_LENGTH == 18


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("HASH", CodeStrategy.HASH),
        (" sequential ", CodeStrategy.SEQUENTIAL),
        ("unknown", CodeStrategy.RANDOM),
        (CodeStrategy.HASH, CodeStrategy.HASH),
    ],
)
def test_code_strategy_parsing(raw: object, expected: CodeStrategy) -> None:
    assert Settings(CODE_STRATEGY=raw).CODE_STRATEGY == expected


def test_code_strategy_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CODE_STRATEGY", "Sequential")
    assert Settings().CODE_STRATEGY == CodeStrategy.SEQUENTIAL
