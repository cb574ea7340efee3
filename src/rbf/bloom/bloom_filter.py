"""Bloom filter trên kho bit từ xa (Redis bitmap).

Mỗi add/exists tính k vị trí rồi gửi đúng một lệnh theo lô tới kho bit.
Lỗi của kho bit được trả nguyên cho người gọi, không thử lại, không ghi log.
"""
from __future__ import annotations

import threading
import time
from enum import Enum, auto
from typing import Iterable, Optional, Union

from rbf.bloom.bloom_params import BloomParams, RequestTimeouts
from rbf.bloom.positions import PositionGenerator
from rbf.errors.bloom_errors import TransportError, UseAfterRelease
from rbf.hashing.hash_funcs import HashStrategy
from rbf.metrics.metrics import FilterMetrics
from rbf.store.bit_store import BitStore
from rbf.types.key_types import BloomKey


class FilterState(Enum):
    ACTIVE = auto()
    RELEASED = auto()


class BloomFilter:
    def __init__(
        self,
        store: BitStore,
        identifier: str,
        capacity: int,
        false_positive_rate: float,
        *,
        hash_strategy: Union[str, HashStrategy, None] = None,
        timeouts: Optional[RequestTimeouts] = None,
        metrics: Optional[FilterMetrics] = None,
    ) -> None:
        """Khởi tạo filter; m, k được tính một lần (CapacityExceeded nếu m vượt 2^32 - 1)."""
        if not identifier:
            raise ValueError("identifier must be a non-empty string")
        self._params = BloomParams.for_capacity(capacity, false_positive_rate)
        self._store = store
        self._identifier = identifier
        self._positions = PositionGenerator(
            self._params.hash_count, self._params.bit_count, hash_strategy
        )
        self._timeouts = timeouts or RequestTimeouts()
        self.metrics = metrics
        self._state = FilterState.ACTIVE
        self._lock = threading.RLock()
        # release() chờ các lời gọi add/exists đang chạy về hết 0
        self._idle = threading.Condition(self._lock)
        self._in_flight = 0

    def add(self, key: BloomKey) -> None:
        """Đặt k bit của khóa trong một lệnh SET theo lô."""
        offsets = self._positions.for_key(key)
        self._begin("add")
        start = time.perf_counter_ns()
        try:
            self._store.set_bits(self._identifier, offsets, timeout=self._timeouts.add)
        except TransportError:
            self._record_error()
            raise
        finally:
            self._end()
        if self.metrics is not None:
            self.metrics.record_add(_micros_since(start))

    def add_many(self, keys: Iterable[BloomKey]) -> None:
        """Thêm nhiều khóa tuần tự."""
        for key in keys:
            self.add(key)

    def exists(self, key: BloomKey) -> bool:
        """True nếu mọi bit đều bằng 1 (có thể dương tính giả), False là chắc chắn vắng mặt."""
        offsets = self._positions.for_key(key)
        self._begin("exists")
        start = time.perf_counter_ns()
        try:
            bits = self._store.get_bits(self._identifier, offsets, timeout=self._timeouts.exists)
        except TransportError:
            self._record_error()
            raise
        finally:
            self._end()
        hit = len(bits) == len(offsets) and all(b == 1 for b in bits)
        if self.metrics is not None:
            self.metrics.record_check(hit, _micros_since(start))
        return hit

    def __contains__(self, key: BloomKey) -> bool:
        return self.exists(key)

    def release(self) -> None:
        """
        Xóa mảng bit phía kho; không thể đảo ngược. Gọi lần hai sẽ báo UseAfterRelease.

        Chờ các add/exists đang chạy kết thúc trước khi DEL, và chặn lời gọi mới
        trong lúc xóa, để một SET đến muộn không tạo lại khóa vừa xóa.
        """
        with self._idle:
            if self._state is FilterState.RELEASED:
                raise UseAfterRelease(self._identifier, "release")
            while self._in_flight:
                self._idle.wait()
            try:
                self._store.delete(self._identifier, timeout=self._timeouts.release)
            except TransportError:
                self._record_error()
                raise
            self._state = FilterState.RELEASED

    @property
    def is_released(self) -> bool:
        with self._lock:
            return self._state is FilterState.RELEASED

    @property
    def identifier(self) -> str:
        return self._identifier

    @property
    def params(self) -> BloomParams:
        return self._params

    @property
    def capacity(self) -> int:
        return self._params.capacity

    @property
    def false_positive_rate(self) -> float:
        return self._params.false_positive_rate

    @property
    def bit_count(self) -> int:
        return self._params.bit_count

    @property
    def hash_count(self) -> int:
        return self._params.hash_count

    @property
    def hash_strategy(self) -> HashStrategy:
        return self._positions.strategy

    def positions_for(self, key: BloomKey) -> list[int]:
        """k vị trí bit của khóa (không I/O)."""
        return self._positions.for_key(key)

    def describe(self) -> dict:
        """Tham số đã suy ra (n, m, p, k) để debug."""
        return {
            "identifier": self._identifier,
            "n": self._params.capacity,
            "m": self._params.bit_count,
            "p": self._params.false_positive_rate,
            "k": self._params.hash_count,
        }

    def print_args(self) -> None:
        p = self._params
        print(f"N: {p.capacity}, M: {p.bit_count}, P: {p.false_positive_rate:f}, K: {p.hash_count}")

    def __repr__(self) -> str:
        p = self._params
        state = self._state.name.lower()
        return (
            f"BloomFilter(identifier={self._identifier!r}, n={p.capacity:,}, m={p.bit_count:,} bits, "
            f"k={p.hash_count}, p={p.false_positive_rate}, hash={self.hash_strategy.name}, state={state})"
        )

    # Hàm nội bộ
    def _begin(self, operation: str) -> None:
        with self._lock:
            if self._state is FilterState.RELEASED:
                raise UseAfterRelease(self._identifier, operation)
            self._in_flight += 1

    def _end(self) -> None:
        with self._idle:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.notify_all()

    def _record_error(self) -> None:
        if self.metrics is not None:
            self.metrics.record_transport_error()


def _micros_since(start_ns: int) -> int:
    return int((time.perf_counter_ns() - start_ns) / 1000)
