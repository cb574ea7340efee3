"""Kho bit trên Redis: một lệnh BITFIELD cho mỗi lô k vị trí, DEL khi release."""
from __future__ import annotations

import threading
from typing import Dict, List, Optional, Sequence

import redis

from rbf.errors.bloom_errors import TransportError
from rbf.store.bit_store import BitStore


class RedisBitStore(BitStore):
    def __init__(self, client: redis.Redis, per_call_timeouts: bool = True) -> None:
        """
        Bọc một redis.Redis.

        Khi per_call_timeouts bật, mỗi giá trị timeout dùng một client riêng (cache lại)
        có cùng cấu hình kết nối nhưng socket_timeout = timeout. Khi tắt, timeout của
        client gốc được dùng cho mọi lời gọi.
        """
        self._client = client
        self._per_call_timeouts = per_call_timeouts
        self._clients: Dict[float, redis.Redis] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisBitStore":
        return cls(redis.Redis.from_url(url, **kwargs))

    @property
    def client(self) -> redis.Redis:
        return self._client

    def set_bits(self, identifier: str, offsets: Sequence[int], timeout: Optional[float] = None) -> None:
        if not offsets:
            return
        args: list = []
        for off in offsets:
            args.extend(("SET", "u1", int(off), 1))
        self._execute(timeout, "BITFIELD", identifier, *args)

    def get_bits(self, identifier: str, offsets: Sequence[int], timeout: Optional[float] = None) -> List[int]:
        if not offsets:
            return []
        args: list = []
        for off in offsets:
            args.extend(("GET", "u1", int(off)))
        reply = self._execute(timeout, "BITFIELD", identifier, *args)
        return [int(v) for v in reply]

    def delete(self, identifier: str, timeout: Optional[float] = None) -> None:
        self._execute(timeout, "DEL", identifier)

    def ping(self, timeout: Optional[float] = None) -> bool:
        return bool(self._execute(timeout, "PING"))

    def close(self) -> None:
        """Đóng các client phụ đã tạo cho từng timeout (client gốc thuộc về người gọi)."""
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            client.close()

    # Hàm nội bộ
    def _execute(self, timeout: Optional[float], *command):
        client = self._client_for(timeout)
        try:
            return client.execute_command(*command)
        except redis.RedisError as exc:
            raise TransportError(f"{command[0]} failed: {exc}") from exc

    def _client_for(self, timeout: Optional[float]) -> redis.Redis:
        """Lấy (hoặc tạo) client có socket_timeout tương ứng."""
        if timeout is None or not self._per_call_timeouts:
            return self._client
        with self._lock:
            client = self._clients.get(timeout)
            if client is None:
                pool = self._client.connection_pool
                kwargs = dict(pool.connection_kwargs)
                kwargs["socket_timeout"] = timeout
                client = redis.Redis(
                    connection_pool=redis.ConnectionPool(
                        connection_class=pool.connection_class,
                        max_connections=pool.max_connections,
                        **kwargs,
                    )
                )
                self._clients[timeout] = client
            return client
