# skyevents/utils/cache.py
from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional


class LRUCache:
    def __init__(self, capacity: int = 1024):
        self.capacity = capacity
        self.store: "OrderedDict[Hashable, Any]" = OrderedDict()
        self.lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self.store)

    def get(self, key: Hashable) -> Optional[Any]:
        with self.lock:
            if key in self.store:
                self.store.move_to_end(key)
                self.hits += 1
                return self.store[key]
            self.misses += 1
            return None

    def set(self, key: Hashable, value: Any) -> None:
        with self.lock:
            self.store[key] = value
            self.store.move_to_end(key)
            if len(self.store) > self.capacity:
                self.store.popitem(last=False)

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        # compute() runs outside the lock; a racing thread may compute the same value twice
        value = self.get(key)
        if value is None:
            value = compute()
            self.set(key, value)
        return value

    def clear(self) -> None:
        with self.lock:
            self.store.clear()
            self.hits = self.misses = 0
