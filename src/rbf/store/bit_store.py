"""Giao diện kho bit (collaborator) và bản cài đặt trong bộ nhớ dựa trên bitarray."""
from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from bitarray import bitarray


class BitStore(ABC):
    """Kho bit địa chỉ hóa theo tên; mỗi lời gọi là một lô nguyên tử."""

    @abstractmethod
    def set_bits(self, identifier: str, offsets: Sequence[int], timeout: Optional[float] = None) -> None:
        """
        Đặt bit = 1 tại mọi offset trong một lời gọi.

        Args:
            identifier: Tên mảng bit
            offsets: Các offset trong [0, m)
            timeout: Thời gian chờ tối đa (giây)
        """

    @abstractmethod
    def get_bits(self, identifier: str, offsets: Sequence[int], timeout: Optional[float] = None) -> List[int]:
        """
        Đọc bit tại các offset, trả về 0/1 theo đúng thứ tự đầu vào.

        Args:
            identifier: Tên mảng bit
            offsets: Các offset trong [0, m)
            timeout: Thời gian chờ tối đa (giây)
        """

    @abstractmethod
    def delete(self, identifier: str, timeout: Optional[float] = None) -> None:
        """Xóa toàn bộ mảng bit; không lỗi nếu không tồn tại."""


class InMemoryBitStore(BitStore):
    def __init__(self) -> None:
        """Mỗi identifier là một bitarray tự mở rộng khi ghi, giống bitmap của Redis."""
        self._arrays: Dict[str, bitarray] = {}
        self._lock = threading.RLock()

    def set_bits(self, identifier: str, offsets: Sequence[int], timeout: Optional[float] = None) -> None:
        if not offsets:
            return
        _check_offsets(offsets)
        with self._lock:
            bits = self._arrays.get(identifier)
            if bits is None:
                bits = bitarray()
                self._arrays[identifier] = bits
            needed = max(offsets) + 1
            if len(bits) < needed:
                bits.extend(_zeros(needed - len(bits)))
            for off in offsets:
                bits[off] = 1

    def get_bits(self, identifier: str, offsets: Sequence[int], timeout: Optional[float] = None) -> List[int]:
        _check_offsets(offsets)
        with self._lock:
            bits = self._arrays.get(identifier)
            if bits is None:
                return [0] * len(offsets)
            size = len(bits)
            return [bits[off] if off < size else 0 for off in offsets]

    def delete(self, identifier: str, timeout: Optional[float] = None) -> None:
        with self._lock:
            self._arrays.pop(identifier, None)

    def exists(self, identifier: str) -> bool:
        with self._lock:
            return identifier in self._arrays

    def count(self, identifier: str) -> int:
        """Số bit đang bằng 1 của một mảng (0 nếu chưa có)."""
        with self._lock:
            bits = self._arrays.get(identifier)
            return bits.count(1) if bits is not None else 0


def _zeros(n: int) -> bitarray:
    bits = bitarray(n)
    bits.setall(0)
    return bits


def _check_offsets(offsets: Sequence[int]) -> None:
    for off in offsets:
        if off < 0:
            raise ValueError(f"negative bit offset: {off}")
