"""CLI demo: Bloom filter trên Redis bitmap.

- Bước 1: tạo filter (n=10000, p=0.001) trên Redis (hoặc kho bit trong bộ nhớ).
- Bước 2: chèn 10.000 khóa ngẫu nhiên 8 byte, kiểm tra không có âm tính giả.
- Bước 3: thử 10.000 khóa mới, đếm dương tính giả.
- Menu console cho phép chọn kho bit, xem tham số và release.
"""

from __future__ import annotations

import os
import secrets
import time
from typing import Dict, List, Optional

import psutil

from rbf.bloom.bloom_filter import BloomFilter
from rbf.errors.bloom_errors import BloomFilterError, TransportError
from rbf.metrics.metrics import FilterMetrics
from rbf.store.bit_store import BitStore, InMemoryBitStore
from rbf.store.redis_store import RedisBitStore


REDIS_URL = os.environ.get("RBF_REDIS_URL", "redis://localhost:6379/0")
FILTER_KEY = os.environ.get("RBF_FILTER_KEY", "bf-test")

CAPACITY = 10_000
FPR_TARGET = 0.001
KEY_BYTES = 8
HASH_STRATEGY = "fnv1a-mmh3"


def _current_memory_bytes() -> int:
    """RSS của tiến trình (bytes)."""
    return psutil.Process(os.getpid()).memory_info().rss


def random_keys(count: int, size: int = KEY_BYTES) -> List[bytes]:
    return [secrets.token_bytes(size) for _ in range(count)]


def open_store(use_redis: bool) -> BitStore:
    """Tạo kho bit; với Redis thì PING trước để báo lỗi kết nối sớm."""
    if not use_redis:
        print("[Store] Dùng kho bit trong bộ nhớ (bitarray)")
        return InMemoryBitStore()
    store = RedisBitStore.from_url(REDIS_URL)
    store.ping(timeout=2.0)
    print(f"[Store] Kết nối Redis: {REDIS_URL}")
    return store


def run_scenario(bf: BloomFilter, count: int = CAPACITY) -> Dict[str, int | float]:
    """Chèn `count` khóa, kiểm tra lại, rồi đo dương tính giả trên `count` khóa mới."""
    stats: Dict[str, int | float] = {
        "inserted": 0,
        "false_negative": 0,
        "probes": 0,
        "false_positive": 0,
    }
    start_time = time.time()
    start_mem = _current_memory_bytes()

    keys = random_keys(count)
    for idx, key in enumerate(keys, start=1):
        bf.add(key)
        stats["inserted"] += 1
        if idx % 2000 == 0 or idx == count:
            print(f"[Tiến độ chèn] {idx}/{count}")

    for key in keys:
        if not bf.exists(key):
            stats["false_negative"] += 1

    inserted = set(keys)
    for key in random_keys(count):
        if key in inserted:
            continue
        stats["probes"] += 1
        if bf.exists(key):
            stats["false_positive"] += 1

    stats["duration_sec"] = time.time() - start_time
    stats["start_mem_bytes"] = start_mem
    stats["end_mem_bytes"] = _current_memory_bytes()
    return stats


def print_stats(bf: BloomFilter, stats: Dict[str, int | float]) -> None:
    inserted = stats.get("inserted", 0)
    probes = stats.get("probes", 0)
    fp = stats.get("false_positive", 0)
    fn = stats.get("false_negative", 0)
    duration = stats.get("duration_sec") or 0.0

    print("\n=== Tóm tắt kết quả ===")
    bf.print_args()
    print(f"Số khóa đã chèn: {inserted}")
    print(f"Âm tính giả: {fn}")
    print(f"Dương tính giả: {fp}/{probes}")
    if probes > 0:
        print(f"- FPR thực tế ≈ {fp / probes:.4%} (mục tiêu {bf.false_positive_rate:.4%})")
    print(f"- FPR lý thuyết ≈ {bf.params.estimate_fpr(inserted):.4%}")
    if duration > 0:
        print(f"Thời gian chạy: {duration:.1f}s")
    end_mem = stats.get("end_mem_bytes")
    start_mem = stats.get("start_mem_bytes")
    print(f"Memory tiến trình (kết thúc): {end_mem:,} bytes (Δ={end_mem - start_mem:+,} bytes)")
    if bf.metrics is not None:
        m = bf.metrics
        print(
            f"Metrics: adds={m.adds} checks={m.checks} positives={m.positives} "
            f"errors={m.transport_errors} avg_latency={m.average_latency_us():.1f}us"
        )


def build_filter(store: BitStore, previous: Optional[BloomFilter] = None) -> BloomFilter:
    """Release filter cũ (nếu còn ACTIVE) và xóa khóa sót lại trước khi tạo filter mới."""
    release_if_active(previous)
    store.delete(FILTER_KEY, timeout=2.0)
    bf = BloomFilter(
        store,
        FILTER_KEY,
        CAPACITY,
        FPR_TARGET,
        hash_strategy=HASH_STRATEGY,
        metrics=FilterMetrics(),
    )
    print(f"[Init] {bf!r}")
    return bf


def release_if_active(bf: Optional[BloomFilter]) -> None:
    if bf is None or bf.is_released:
        return
    bf.release()
    print(f"[Release] Đã xóa '{bf.identifier}'")


def main() -> None:
    print("=== Demo Bloom filter trên Redis bitmap ===")
    bf: Optional[BloomFilter] = None

    while True:
        print("\nMenu:")
        print(" 1. Tạo filter trên Redis và chạy kịch bản")
        print(" 2. Tạo filter trong bộ nhớ và chạy kịch bản")
        print(" 3. In tham số filter")
        print(" 4. Release filter")
        print(" 5. Thoát")
        choice = input("Chọn [1-5]: ").strip()

        if choice in ("1", "2", ""):
            try:
                store = open_store(use_redis=(choice != "2"))
                bf = build_filter(store, previous=bf)
                print_stats(bf, run_scenario(bf))
            except TransportError as exc:
                print(f"[Lỗi] Kho bit không phản hồi: {exc}")
        elif choice == "3":
            if bf is None:
                print("Chưa có filter (chọn 1 hoặc 2).")
                continue
            print(bf.describe())
        elif choice == "4":
            if bf is None:
                print("Chưa có filter (chọn 1 hoặc 2).")
                continue
            try:
                bf.release()
                print(f"[Release] Đã xóa '{bf.identifier}'")
            except BloomFilterError as exc:
                print(f"[Lỗi] {exc}")
        elif choice == "5":
            try:
                release_if_active(bf)
            except TransportError as exc:
                print(f"[Lỗi] Kho bit không phản hồi: {exc}")
            print("Thoát.")
            break
        else:
            print("Lựa chọn không hợp lệ.")


if __name__ == "__main__":
    main()
