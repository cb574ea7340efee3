"""Tiện ích khóa cho Bloom filter.

Hàm băm làm việc trên bytes. Module này chuẩn hóa các kiểu khóa được
chấp nhận (bytes, bytearray, memoryview, str) thành bytes.
"""
from __future__ import annotations

from typing import Union

BloomKey = Union[bytes, bytearray, memoryview, str]


def to_key_bytes(key: BloomKey) -> bytes:
    """Chuyển khóa thành bytes; str được mã hóa UTF-8."""
    if isinstance(key, bytes):
        return key
    if isinstance(key, (bytearray, memoryview)):
        return bytes(key)
    if isinstance(key, str):
        return key.encode("utf-8")
    raise TypeError(f"unsupported key type: {type(key).__name__}")
