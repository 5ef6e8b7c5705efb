"""Finalisation mixers of MurmurHash3 on unsigned 64- and 32-bit integers."""

_MASK64 = (1 << 64) - 1
_MASK32 = (1 << 32) - 1


def fmix64(k: int) -> int:
    """Mix the bits of a 64-bit unsigned integer."""
    k &= _MASK64
    k ^= k >> 33
    k = (k * 0xFF51AFD7ED558CCD) & _MASK64
    k ^= k >> 33
    k = (k * 0xC4CEB9FE1A85EC53) & _MASK64
    k ^= k >> 33
    return k


def fmix32(h: int) -> int:
    """Mix the bits of a 32-bit unsigned integer."""
    h &= _MASK32
    h ^= h >> 16
    h = (h * 0x85EBCA6B) & _MASK32
    h ^= h >> 13
    h = (h * 0xC2B2AE35) & _MASK32
    h ^= h >> 16
    return h