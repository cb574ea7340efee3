"""Các lỗi của Bloom filter trên kho bit từ xa."""
from __future__ import annotations


class BloomFilterError(Exception):
    """Lỗi gốc cho mọi lỗi của thư viện."""


class CapacityExceeded(BloomFilterError):
    """Kích thước mảng bit vượt quá giới hạn địa chỉ hóa (2^32 - 1 bit)."""

    def __init__(self, bit_count: float, max_bits: int) -> None:
        super().__init__(f"bitmap exceeds {max_bits} bits (required {bit_count:.0f})")
        self.bit_count = bit_count
        self.max_bits = max_bits


class TransportError(BloomFilterError):
    """Lời gọi tới kho bit thất bại hoặc quá thời gian chờ."""


class UseAfterRelease(BloomFilterError):
    """Thao tác trên filter đã release."""

    def __init__(self, identifier: str, operation: str) -> None:
        super().__init__(f"bloom filter '{identifier}' already released ({operation})")
        self.identifier = identifier
        self.operation = operation
