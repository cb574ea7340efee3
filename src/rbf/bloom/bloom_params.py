"""Tiện ích tham số Bloom filter."""
from __future__ import annotations

import math
import numbers
from dataclasses import dataclass

from rbf.errors.bloom_errors import CapacityExceeded

# Offset trên bitmap là uint32; Redis cũng giới hạn chuỗi ở 512 MiB.
MAX_BIT_COUNT = 2**32 - 1


@dataclass(frozen=True)
class BloomParams:
    capacity: int
    false_positive_rate: float
    bit_count: int
    hash_count: int

    @staticmethod
    def for_capacity(expected_items: int, target_fpr: float) -> "BloomParams":
        """Tính m (bit) và k (số hash) tối ưu cho sức chứa và FPR mong muốn."""
        if isinstance(expected_items, bool) or not isinstance(expected_items, numbers.Integral):
            raise ValueError("expected_items must be an integer")
        if expected_items <= 0:
            raise ValueError("expected_items must be positive")
        if not (0 < target_fpr < 1):
            raise ValueError("target_fpr must be in (0,1)")

        try:
            m = -int(expected_items) * math.log(target_fpr) / (math.log(2) ** 2)
        except OverflowError:
            # n không biểu diễn được bằng float thì chắc chắn vượt giới hạn
            raise CapacityExceeded(math.inf, MAX_BIT_COUNT) from None
        if m > MAX_BIT_COUNT:
            raise CapacityExceeded(m, MAX_BIT_COUNT)
        m_bits = int(math.ceil(m))
        k = int(math.ceil(-math.log2(target_fpr)))
        return BloomParams(
            capacity=int(expected_items),
            false_positive_rate=target_fpr,
            bit_count=m_bits,
            hash_count=k,
        )

    def estimate_fpr(self, inserted: int) -> float:
        """Ước lượng FPR lý thuyết (1 - e^{-kn/m})^k sau khi chèn `inserted` khóa."""
        if inserted <= 0:
            return 0.0
        exponent = -self.hash_count * inserted / float(self.bit_count)
        return (1.0 - math.exp(exponent)) ** self.hash_count


def derive(n: int, p: float) -> BloomParams:
    """(n, p) -> BloomParams(m, k). Thuần túy, tất định."""
    return BloomParams.for_capacity(n, p)


@dataclass(frozen=True)
class RequestTimeouts:
    """Thời gian chờ (giây) cho từng lời gọi tới kho bit."""

    add: float = 2.0
    exists: float = 1.0
    release: float = 1.0
