"""Bộ đếm metrics gọn cho các thao tác của Bloom filter."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field


@dataclass
class FilterMetrics:
    adds: int = 0
    checks: int = 0
    positives: int = 0
    negatives: int = 0
    transport_errors: int = 0
    latency_total_us: int = 0
    request_count: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def record_add(self, micros: int) -> None:
        with self._lock:
            self.adds += 1
            self.latency_total_us += micros
            self.request_count += 1

    def record_check(self, hit: bool, micros: int) -> None:
        with self._lock:
            self.checks += 1
            if hit:
                self.positives += 1
            else:
                self.negatives += 1
            self.latency_total_us += micros
            self.request_count += 1

    def record_transport_error(self) -> None:
        with self._lock:
            self.transport_errors += 1

    def average_latency_us(self) -> float:
        with self._lock:
            if self.request_count == 0:
                return 0.0
            return self.latency_total_us / float(self.request_count)

    def positive_rate(self) -> float:
        with self._lock:
            if self.checks == 0:
                return 0.0
            return self.positives / float(self.checks)
