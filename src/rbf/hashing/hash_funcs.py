"""Hai hàm băm 32-bit độc lập cho double hashing.

H1 là FNV-1a (xor rồi nhân từng byte), H2 là MurmurHash3 x86_32 (trộn khối
4 byte + avalanche). Hai họ hàm khác nhau để h1 và h2 không tương quan.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Union

import mmh3

MASK32 = 0xFFFFFFFF

FNV32_OFFSET_BASIS = 0x811C9DC5
FNV32_PRIME = 0x01000193

_C1 = 0xCC9E2D51
_C2 = 0x1B873593

HashFunc = Callable[[bytes], int]


def fnv1a_32(data: bytes) -> int:
    """FNV-1a 32-bit, không có bước hoàn thiện."""
    h = FNV32_OFFSET_BASIS
    for byte in data:
        h ^= byte
        h = (h * FNV32_PRIME) & MASK32
    return h


def _rotl32(x: int, r: int) -> int:
    return ((x << r) | (x >> (32 - r))) & MASK32


def _fmix32(h: int) -> int:
    h ^= h >> 16
    h = (h * 0x85EBCA6B) & MASK32
    h ^= h >> 13
    h = (h * 0xC2B2AE35) & MASK32
    h ^= h >> 16
    return h


def murmur3_32(data: bytes, seed: int = 0) -> int:
    """MurmurHash3 x86_32, đọc khối 4 byte little-endian qua slice có kiểm tra biên."""
    length = len(data)
    h1 = seed & MASK32
    nblocks = length // 4

    for i in range(nblocks):
        k1 = int.from_bytes(data[i * 4:i * 4 + 4], "little")
        k1 = (k1 * _C1) & MASK32
        k1 = _rotl32(k1, 15)
        k1 = (k1 * _C2) & MASK32
        h1 ^= k1
        h1 = _rotl32(h1, 13)
        h1 = (h1 * 5 + 0xE6546B64) & MASK32

    tail = data[nblocks * 4:]
    if tail:
        # 1-3 byte cuối, ghép little-endian
        k1 = int.from_bytes(tail, "little")
        k1 = (k1 * _C1) & MASK32
        k1 = _rotl32(k1, 15)
        k1 = (k1 * _C2) & MASK32
        h1 ^= k1

    h1 ^= length & MASK32
    return _fmix32(h1)


def mmh3_32(data: bytes) -> int:
    """Cùng kết quả với murmur3_32 nhưng chạy bằng extension C của mmh3."""
    return mmh3.hash(data, 0, signed=False)


@dataclass(frozen=True)
class HashStrategy:
    name: str
    h1: HashFunc
    h2: HashFunc

    def __post_init__(self) -> None:
        if self.h1 is self.h2:
            raise ValueError("h1 and h2 must be independent hash functions")

    def hash_pair(self, data: bytes) -> tuple[int, int]:
        return self.h1(data) & MASK32, self.h2(data) & MASK32


HASH_STRATEGIES: Dict[str, HashStrategy] = {
    "fnv1a-murmur3": HashStrategy("fnv1a-murmur3", fnv1a_32, murmur3_32),
    "fnv1a-mmh3": HashStrategy("fnv1a-mmh3", fnv1a_32, mmh3_32),
}

DEFAULT_STRATEGY = "fnv1a-murmur3"


def get_strategy(strategy: Union[str, HashStrategy, None] = None) -> HashStrategy:
    """Lấy HashStrategy theo tên (hoặc trả lại chính đối tượng)."""
    if strategy is None:
        strategy = DEFAULT_STRATEGY
    if isinstance(strategy, HashStrategy):
        return strategy
    try:
        return HASH_STRATEGIES[strategy]
    except KeyError:
        known = ", ".join(sorted(HASH_STRATEGIES))
        raise ValueError(f"unknown hash strategy '{strategy}' (known: {known})") from None
