"""Tests for fingerprint.py: djb2 hashing and winnowing."""

import pytest

from evaluation_service.fingerprint import djb2, fingerprint_set, fingerprints, kgram_hashes


def _tokens(n: int) -> list[str]:
    return [f"tok{i % 7}_{i % 3}" for i in range(n)]


def test_djb2_known_values():
    assert djb2("") == 5381
    assert djb2("a") == 5381 * 33 + 97


def test_djb2_is_not_reduced_to_32_bits():
    expected = 5381
    for ch in "calculate_total":
        expected = expected * 33 + ord(ch)
    assert expected > 2 ** 32
    assert djb2("calculate_total") == expected
    assert djb2("x" * 500) >= 0


def test_kgram_hashes_positions():
    hashes = kgram_hashes(["aaa", "bbb", "ccc", "ddd"], k=3)
    assert [h.position for h in hashes] == [0, 1]
    assert hashes[0].hash == djb2("aaabbbccc")


def test_too_few_tokens_yield_no_fingerprints():
    assert fingerprints(["only", "two"]) == []


def test_short_sequence_gets_single_window():
    result = fingerprints(["aaa", "bbb", "ccc", "ddd"], window_size=5, k=3)
    assert len(result) == 1


@pytest.mark.parametrize("n", [0, 1, 3, 5, 8, 20, 57, 200])
def test_fingerprint_count_never_exceeds_token_count(n):
    tokens = _tokens(n)
    assert len(fingerprints(tokens)) <= len(tokens)


def test_repeated_tokens_still_bounded():
    tokens = ["same"] * 40
    assert len(fingerprints(tokens)) <= len(tokens)


def test_positions_strictly_increase():
    positions = [fp.position for fp in fingerprints(_tokens(100))]
    assert positions == sorted(set(positions))


def test_every_window_is_covered():
    tokens = _tokens(60)
    window, k = 5, 3
    positions = {fp.position for fp in fingerprints(tokens, window, k)}
    n_hashes = len(tokens) - k + 1
    for start in range(n_hashes - window + 1):
        assert any(start <= p < start + window for p in positions)


def test_shared_run_yields_shared_fingerprint():
    shared = [f"shared{i}" for i in range(12)]
    a = [f"left{i}" for i in range(10)] + shared
    b = shared + [f"right{i}" for i in range(15)]
    assert fingerprint_set(a) & fingerprint_set(b)
