import pytest

from markovkmc.hashing import fmix32, fmix64

M64 = 1 << 64
M32 = 1 << 32


def _unshift(value, shift, bits):
    x = value
    for _ in range(bits // shift + 1):
        x = value ^ (x >> shift)
    return x


def _unmix64(k):
    k = _unshift(k, 33, 64)
    k = (k * pow(0xC4CEB9FE1A85EC53, -1, M64)) % M64
    k = _unshift(k, 33, 64)
    k = (k * pow(0xFF51AFD7ED558CCD, -1, M64)) % M64
    return _unshift(k, 33, 64)


def _unmix32(h):
    h = _unshift(h, 16, 32)
    h = (h * pow(0xC2B2AE35, -1, M32)) % M32
    h = _unshift(h, 13, 32)
    h = (h * pow(0x85EBCA6B, -1, M32)) % M32
    return _unshift(h, 16, 32)


def test_zero_maps_to_zero():
    assert fmix64(0) == 0
    assert fmix32(0) == 0


@pytest.mark.parametrize("value", [1, 2, 12345, 2**40 + 17, M64 - 1])
def test_fmix64_round_trip(value):
    assert _unmix64(fmix64(value)) == value


@pytest.mark.parametrize("value", [1, 2, 12345, 2**31 + 9, M32 - 1])
def test_fmix32_round_trip(value):
    assert _unmix32(fmix32(value)) == value


def test_results_stay_in_range():
    for value in range(0, 5000, 7):
        assert 0 <= fmix64(value) < M64
        assert 0 <= fmix32(value) < M32


def test_distinct_inputs_give_distinct_outputs():
    assert len({fmix64(v) for v in range(2000)}) == 2000
    assert len({fmix32(v) for v in range(2000)}) == 2000


def test_inputs_are_reduced_to_word_size():
    assert fmix64(M64 + 5) == fmix64(5)
    assert fmix64(-1) == fmix64(M64 - 1)
    assert fmix32(M32 + 5) == fmix32(5)
    assert fmix32(-1) == fmix32(M32 - 1)