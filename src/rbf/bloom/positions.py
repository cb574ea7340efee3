"""Sinh k vị trí bit bằng enhanced double hashing: g_i = h1 + i*h2 + i^2 (mod 2^32) mod m."""
from __future__ import annotations

from typing import Union

import numpy as np

from rbf.hashing.hash_funcs import MASK32, HashStrategy, get_strategy
from rbf.types.key_types import BloomKey, to_key_bytes


def positions(h1: int, h2: int, k: int, m: int) -> list[int]:
    """Trả về k vị trí trong [0, m), số học uint32 có tràn vòng."""
    if k <= 0:
        raise ValueError("k must be positive")
    if m <= 0:
        raise ValueError("m must be positive")
    h1 &= MASK32
    h2 &= MASK32
    return [((h1 + i * h2 + i * i) & MASK32) % m for i in range(k)]


def position_matrix(h1s, h2s, k: int, m: int) -> np.ndarray:
    """Phiên bản vector hóa: mảng (len(h1s), k) các vị trí, dtype uint64."""
    a = np.asarray(h1s, dtype=np.uint64).reshape(-1, 1) & np.uint64(MASK32)
    b = np.asarray(h2s, dtype=np.uint64).reshape(-1, 1) & np.uint64(MASK32)
    i = np.arange(k, dtype=np.uint64).reshape(1, -1)
    g = (a + i * b + i * i) & np.uint64(MASK32)
    return g % np.uint64(m)


class PositionGenerator:
    def __init__(self, k: int, m: int, strategy: Union[str, HashStrategy, None] = None) -> None:
        """Gắn k, m và cặp hàm băm; không giữ trạng thái thay đổi nên an toàn đa luồng."""
        if k <= 0:
            raise ValueError("k must be positive")
        if m <= 0:
            raise ValueError("m must be positive")
        self.k = k
        self.m = m
        self.strategy = get_strategy(strategy)

    def for_key(self, key: BloomKey) -> list[int]:
        h1, h2 = self.strategy.hash_pair(to_key_bytes(key))
        return positions(h1, h2, self.k, self.m)

    def hash_arrays(self, keys) -> tuple[np.ndarray, np.ndarray]:
        """Băm nhiều khóa, trả về hai mảng uint64 (h1, h2)."""
        pairs = [self.strategy.hash_pair(to_key_bytes(key)) for key in keys]
        if not pairs:
            empty = np.zeros(0, dtype=np.uint64)
            return empty, empty.copy()
        arr = np.array(pairs, dtype=np.uint64)
        return arr[:, 0], arr[:, 1]

    def for_keys(self, keys) -> np.ndarray:
        h1s, h2s = self.hash_arrays(keys)
        return position_matrix(h1s, h2s, self.k, self.m)
