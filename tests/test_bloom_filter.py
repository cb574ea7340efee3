import threading

import pytest

from rbf.bloom.bloom_filter import BloomFilter
from rbf.bloom.bloom_params import RequestTimeouts
from rbf.errors.bloom_errors import CapacityExceeded, TransportError, UseAfterRelease
from rbf.metrics.metrics import FilterMetrics
from rbf.store.bit_store import InMemoryBitStore


class RecordingStore(InMemoryBitStore):
    """Kho bit ghi lại từng lời gọi (tên, identifier, offsets, timeout)."""

    def __init__(self, fail=False):
        super().__init__()
        self.calls = []
        self.fail = fail

    def set_bits(self, identifier, offsets, timeout=None):
        self.calls.append(("set", identifier, list(offsets), timeout))
        if self.fail:
            raise TransportError("set failed")
        super().set_bits(identifier, offsets, timeout)

    def get_bits(self, identifier, offsets, timeout=None):
        self.calls.append(("get", identifier, list(offsets), timeout))
        if self.fail:
            raise TransportError("get failed")
        return super().get_bits(identifier, offsets, timeout)

    def delete(self, identifier, timeout=None):
        self.calls.append(("delete", identifier, None, timeout))
        if self.fail:
            raise TransportError("delete failed")
        super().delete(identifier, timeout)


def test_one_batched_call_per_operation_with_timeouts():
    store = RecordingStore()
    bf = BloomFilter(store, "bf", 10000, 0.001)
    bf.add(b"key")
    bf.exists(b"key")
    bf.release()

    (op1, id1, pos1, t1), (op2, id2, pos2, t2), (op3, id3, _, t3) = store.calls
    assert (op1, op2, op3) == ("set", "get", "delete")
    assert id1 == id2 == id3 == "bf"
    assert pos1 == pos2 == bf.positions_for(b"key")
    assert len(pos1) == bf.hash_count == 10
    assert (t1, t2, t3) == (2.0, 1.0, 1.0)


def test_custom_timeouts():
    store = RecordingStore()
    bf = BloomFilter(store, "bf", 100, 0.01, timeouts=RequestTimeouts(add=0.5, exists=0.25, release=3.0))
    bf.add(b"a")
    bf.exists(b"a")
    bf.release()
    assert [c[3] for c in store.calls] == [0.5, 0.25, 3.0]


def test_exists_requires_every_bit():
    store = InMemoryBitStore()
    bf = BloomFilter(store, "bf", 1000, 0.01)
    pos = bf.positions_for(b"key")
    store.set_bits("bf", [p for p in pos if p != pos[-1]])
    assert not bf.exists(b"key")
    store.set_bits("bf", pos[-1:])
    assert bf.exists(b"key")


def test_transport_errors_propagate_and_state_stays_active():
    store = RecordingStore(fail=True)
    metrics = FilterMetrics()
    bf = BloomFilter(store, "bf", 100, 0.01, metrics=metrics)
    with pytest.raises(TransportError):
        bf.add(b"a")
    with pytest.raises(TransportError):
        bf.exists(b"a")
    with pytest.raises(TransportError):
        bf.release()
    assert not bf.is_released
    assert metrics.transport_errors == 3
    assert metrics.adds == 0 and metrics.checks == 0


def test_capacity_exceeded_at_construction():
    with pytest.raises(CapacityExceeded):
        BloomFilter(InMemoryBitStore(), "huge", 10**9, 0.001)


def test_invalid_construction_arguments():
    with pytest.raises(ValueError):
        BloomFilter(InMemoryBitStore(), "", 100, 0.01)
    with pytest.raises(ValueError):
        BloomFilter(InMemoryBitStore(), "bf", 100, 0.01, hash_strategy="unknown")
    bf = BloomFilter(InMemoryBitStore(), "bf", 100, 0.01)
    with pytest.raises(TypeError):
        bf.add(12345)


def test_describe_and_print_args(capsys):
    bf = BloomFilter(InMemoryBitStore(), "bf-test", 10000, 0.001)
    assert bf.describe() == {"identifier": "bf-test", "n": 10000, "m": 143776, "p": 0.001, "k": 10}
    bf.print_args()
    assert capsys.readouterr().out.strip() == "N: 10000, M: 143776, P: 0.001000, K: 10"
    assert "state=active" in repr(bf)
    bf.release()
    assert "state=released" in repr(bf)
    # chẩn đoán vẫn đọc được sau release
    assert bf.describe()["k"] == 10


def test_use_after_release_carries_operation():
    bf = BloomFilter(InMemoryBitStore(), "gone", 100, 0.01)
    bf.release()
    with pytest.raises(UseAfterRelease) as info:
        bf.exists(b"a")
    assert info.value.identifier == "gone"
    assert info.value.operation == "exists"


def test_hash_strategies_agree():
    store = InMemoryBitStore()
    pure = BloomFilter(store, "pure", 1000, 0.01)
    fast = BloomFilter(store, "fast", 1000, 0.01, hash_strategy="fnv1a-mmh3")
    for i in range(100):
        key = f"user:{i}".encode()
        assert pure.positions_for(key) == fast.positions_for(key)


def test_metrics_recorded():
    metrics = FilterMetrics()
    bf = BloomFilter(InMemoryBitStore(), "bf", 1000, 0.01, metrics=metrics)
    bf.add_many([b"a", b"b", b"c"])
    assert bf.exists(b"a")
    assert not bf.exists(b"definitely-not-there-0")
    assert metrics.adds == 3
    assert metrics.checks == 2
    assert metrics.positives >= 1
    assert metrics.request_count == 5
    assert metrics.average_latency_us() >= 0.0
    assert 0.0 < metrics.positive_rate() <= 1.0


def test_concurrent_adds_have_no_false_negatives():
    bf = BloomFilter(InMemoryBitStore(), "bf", 4000, 0.01)
    keys = [f"k-{t}-{i}".encode() for t in range(4) for i in range(500)]

    def worker(chunk):
        for key in chunk:
            bf.add(key)

    threads = [threading.Thread(target=worker, args=(keys[t::4],)) for t in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert all(bf.exists(k) for k in keys)


def test_concurrent_metrics_are_not_lost():
    metrics = FilterMetrics()
    bf = BloomFilter(InMemoryBitStore(), "bf", 10000, 0.01, metrics=metrics)

    def worker(t):
        for i in range(500):
            key = f"m-{t}-{i}".encode()
            bf.add(key)
            bf.exists(key)

    threads = [threading.Thread(target=worker, args=(t,)) for t in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert metrics.adds == 8 * 500
    assert metrics.checks == 8 * 500
    assert metrics.positives == 8 * 500
    assert metrics.request_count == 2 * 8 * 500


class BlockingStore(InMemoryBitStore):
    """set_bits dừng lại cho tới khi `go` được bật."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.go = threading.Event()
        self.deleted = threading.Event()

    def set_bits(self, identifier, offsets, timeout=None):
        self.entered.set()
        assert self.go.wait(5)
        super().set_bits(identifier, offsets, timeout)

    def delete(self, identifier, timeout=None):
        super().delete(identifier, timeout)
        self.deleted.set()


def test_release_waits_for_in_flight_add():
    store = BlockingStore()
    bf = BloomFilter(store, "bf", 100, 0.01)

    adder = threading.Thread(target=bf.add, args=(b"late",))
    adder.start()
    assert store.entered.wait(5)

    releaser = threading.Thread(target=bf.release)
    releaser.start()
    # DEL chưa được gửi khi SET còn đang chạy
    assert not store.deleted.wait(0.2)
    assert not bf.is_released

    store.go.set()
    adder.join(5)
    releaser.join(5)
    assert store.deleted.is_set()
    assert bf.is_released
    # SET đến trước DEL nên khóa không bị tạo lại
    assert not store.exists("bf")
    with pytest.raises(UseAfterRelease):
        bf.add(b"after")
