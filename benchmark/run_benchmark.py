# benchmark/run_benchmark.py
"""
Benchmark Bloom filter (rbf) trên kho bit trong bộ nhớ hoặc Redis

- Quét nhiều mức FPR mục tiêu p, đo FPR thực tế so với p
- Multiple runs với avg ± std cho FPR, throughput add/exists
- Phân bố vị trí bit (numpy histogram) để kiểm tra không bị dồn cụm
- Kết quả lưu CSV (pandas), in bảng (tabulate), vẽ biểu đồ (matplotlib)
"""

import os
import sys
import time
import secrets
from typing import List

import psutil
import numpy as np
import pandas as pd
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
from tabulate import tabulate

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))
from rbf.bloom.bloom_filter import BloomFilter
from rbf.bloom.positions import PositionGenerator
from rbf.store.bit_store import InMemoryBitStore
from rbf.store.redis_store import RedisBitStore

FPR_TARGETS = [0.1, 0.05, 0.01, 0.005, 0.001]
HASH_STRATEGY = "fnv1a-mmh3"
REDIS_URL = os.environ.get("RBF_REDIS_URL")


def random_keys(count: int, size: int = 8) -> List[bytes]:
    return [secrets.token_bytes(size) for _ in range(count)]


def make_store():
    if REDIS_URL:
        print(f"Dùng Redis: {REDIS_URL}")
        return RedisBitStore.from_url(REDIS_URL)
    return InMemoryBitStore()


def benchmark_once(store, capacity: int, p: float, probes: int, run: int) -> dict:
    """Một lần chạy: chèn `capacity` khóa, đo FPR trên `probes` khóa mới."""
    bf = BloomFilter(store, f"bench:{p}:{run}", capacity, p, hash_strategy=HASH_STRATEGY)
    keys = random_keys(capacity)

    start_insert = time.time()
    bf.add_many(keys)
    insert_duration = time.time() - start_insert

    inserted = set(keys)
    test_keys = [k for k in random_keys(probes) if k not in inserted]

    start_query = time.time()
    false_positives = sum(1 for k in test_keys if bf.exists(k))
    query_duration = time.time() - start_query

    result = {
        "p": p,
        "run": run,
        "m_bits": bf.bit_count,
        "k_hash": bf.hash_count,
        "fpr": false_positives / max(1, len(test_keys)),
        "fpr_theory": bf.params.estimate_fpr(capacity),
        "add_qps": capacity / max(1e-9, insert_duration),
        "exists_qps": len(test_keys) / max(1e-9, query_duration),
        "memory_kb": psutil.Process().memory_info().rss / 1024,
    }
    bf.release()
    return result


def run_full_benchmark(capacity: int = 10_000, probes: int = 10_000, num_runs: int = 3) -> pd.DataFrame:
    """Chạy benchmark với mọi p trong FPR_TARGETS, mỗi p chạy num_runs lần"""
    store = make_store()
    rows = []
    for p in FPR_TARGETS:
        for run in range(1, num_runs + 1):
            print(f"[Run] p={p} lần {run}/{num_runs}")
            rows.append(benchmark_once(store, capacity, p, probes, run))

    df = pd.DataFrame(rows)
    summary = (
        df.groupby("p")
        .agg(
            m_bits=("m_bits", "first"),
            k_hash=("k_hash", "first"),
            fpr_mean=("fpr", "mean"),
            fpr_std=("fpr", "std"),
            fpr_theory=("fpr_theory", "first"),
            add_qps=("add_qps", "mean"),
            exists_qps=("exists_qps", "mean"),
        )
        .reset_index()
        .sort_values("p", ascending=False)
    )

    print_results(summary, num_runs)
    os.makedirs("plots", exist_ok=True)
    df.to_csv("plots/benchmark_runs.csv", index=False)
    plot_results(summary)
    return summary


def position_histogram(capacity: int = 10_000, p: float = 0.001, buckets: int = 64) -> np.ndarray:
    """Đếm số vị trí rơi vào mỗi bucket của [0, m) cho `capacity` khóa ngẫu nhiên."""
    bf = BloomFilter(InMemoryBitStore(), "hist", capacity, p)
    gen = PositionGenerator(bf.hash_count, bf.bit_count, HASH_STRATEGY)
    pos = gen.for_keys(random_keys(capacity)).ravel()
    counts, _ = np.histogram(pos, bins=buckets, range=(0, bf.bit_count))
    expected = pos.size / buckets
    chi2 = float(((counts - expected) ** 2 / expected).sum())
    print(f"Phân bố vị trí: {pos.size:,} vị trí, {buckets} bucket, chi2={chi2:.1f} (bậc tự do {buckets - 1})")
    return counts


def print_results(summary: pd.DataFrame, num_runs: int):
    """In bảng kết quả"""
    table = []
    for _, s in summary.iterrows():
        table.append([
            s["p"],
            f"{int(s['m_bits']):,}",
            int(s["k_hash"]),
            f"{s['fpr_mean']:.4%} ± {s['fpr_std']:.4%}",
            f"{s['fpr_theory']:.4%}",
            f"{s['add_qps']:,.0f} qps",
            f"{s['exists_qps']:,.0f} qps",
        ])

    print(f"\n=== KẾT QUẢ BENCHMARK (Avg ± Std over {num_runs} runs) ===")
    print(tabulate(table, headers=["p", "m", "k", "FPR thực tế", "FPR lý thuyết", "Add", "Exists"], tablefmt="github"))


def plot_results(summary: pd.DataFrame):
    """Vẽ FPR thực tế vs mục tiêu và phân bố vị trí"""
    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(14, 6))

    ax1.errorbar(summary["p"], summary["fpr_mean"], yerr=summary["fpr_std"].fillna(0), fmt="o-", capsize=5, label="Thực tế")
    ax1.plot(summary["p"], summary["p"], "--", color="gray", label="Mục tiêu p")
    ax1.set_xscale("log")
    ax1.set_yscale("log")
    ax1.set_xlabel("FPR mục tiêu p")
    ax1.set_ylabel("FPR thực tế")
    ax1.set_title("False Positive Rate")
    ax1.legend()

    counts = position_histogram()
    ax2.bar(np.arange(len(counts)), counts, color="green", alpha=0.8)
    ax2.axhline(counts.mean(), color="orange", linestyle="--")
    ax2.set_xlabel("Bucket trên [0, m)")
    ax2.set_ylabel("Số vị trí")
    ax2.set_title("Phân bố vị trí bit")

    plt.suptitle("rbf: Bloom filter double hashing (FNV-1a + Murmur3)")
    plt.tight_layout()

    plot_path = "plots/benchmark_fpr.png"
    plt.savefig(plot_path, dpi=200)
    plt.close()
    print(f"\nBiểu đồ đã lưu tại: {plot_path}")


if __name__ == "__main__":
    run_full_benchmark(capacity=10_000, probes=10_000, num_runs=3)
