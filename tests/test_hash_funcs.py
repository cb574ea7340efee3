import random

import mmh3
import pytest

from rbf.hashing.hash_funcs import (
    HASH_STRATEGIES,
    HashStrategy,
    fnv1a_32,
    get_strategy,
    mmh3_32,
    murmur3_32,
)


def test_fnv1a_known_vectors():
    assert fnv1a_32(b"") == 0x811C9DC5
    assert fnv1a_32(b"a") == 0xE40C292C
    assert fnv1a_32(b"foobar") == 0xBF9CF968


def test_murmur3_known_vectors():
    assert murmur3_32(b"") == 0
    assert murmur3_32(b"", seed=1) == 0x514E28B7
    assert murmur3_32(b"hello") == 0x248BFA47


def test_murmur3_matches_mmh3_for_every_tail_length():
    rng = random.Random(3)
    for length in range(0, 41):
        data = bytes(rng.getrandbits(8) for _ in range(length))
        assert murmur3_32(data) == mmh3.hash(data, 0, signed=False), length
        assert mmh3_32(data) == murmur3_32(data)


def test_hashes_are_32_bit_and_deterministic():
    rng = random.Random(11)
    for _ in range(200):
        data = bytes(rng.getrandbits(8) for _ in range(rng.randint(0, 30)))
        for fn in (fnv1a_32, murmur3_32):
            value = fn(data)
            assert 0 <= value <= 0xFFFFFFFF
            assert fn(data) == value


def test_h1_h2_rarely_collide():
    rng = random.Random(42)
    collisions = 0
    for _ in range(10000):
        data = rng.getrandbits(64).to_bytes(8, "little")
        if fnv1a_32(data) == murmur3_32(data):
            collisions += 1
    assert collisions <= 1


def test_strategy_registry():
    assert get_strategy().name == "fnv1a-murmur3"
    assert get_strategy("fnv1a-mmh3") is HASH_STRATEGIES["fnv1a-mmh3"]
    custom = HashStrategy("custom", fnv1a_32, mmh3_32)
    assert get_strategy(custom) is custom
    a, b = get_strategy().hash_pair(b"key")
    assert (a, b) == (fnv1a_32(b"key"), murmur3_32(b"key"))


def test_strategy_rejects_unknown_and_identical_functions():
    with pytest.raises(ValueError):
        get_strategy("fnv1a-fnv1a")
    with pytest.raises(ValueError):
        HashStrategy("same", fnv1a_32, fnv1a_32)
