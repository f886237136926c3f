"""Message broker interface and an in-memory, thread-safe implementation."""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass

SUBSCRIPTION_BUFFER = 100
"""Number of messages a subscription holds before new ones are dropped."""


@dataclass(frozen=True)
class Message:
    """A message consumed from a broker."""

    topic: str
    key: str
    value: bytes
    offset: int = 0
    partition: int = 0
    timestamp: int = 0


class BrokerClosedError(RuntimeError):
    """Raised when publishing to or subscribing on a closed broker."""

    def __init__(self) -> None:
        super().__init__("broker is closed")


class Subscription:
    """A bounded stream of messages for one subscriber.

    Iterating yields messages until the subscription is closed and drained.
    """

    def __init__(self, topic: str, group_id: str, capacity: int = SUBSCRIPTION_BUFFER) -> None:
        self.topic = topic
        self.group_id = group_id
        self._capacity = capacity
        self._items: deque[Message] = deque()
        self._closed = False
        self._cond = threading.Condition()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def _offer(self, message: Message) -> bool:
        with self._cond:
            if self._closed or len(self._items) >= self._capacity:
                return False
            self._items.append(message)
            self._cond.notify()
            return True

    def _close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def get(self, timeout: float | None = None) -> Message | None:
        """Return the next message, or None once closed and drained.

        Raises TimeoutError if nothing arrives within ``timeout`` seconds.
        """
        with self._cond:
            ready = self._cond.wait_for(lambda: bool(self._items) or self._closed, timeout)
            if not ready:
                raise TimeoutError(f"no message on topic '{self.topic}' within {timeout}s")
            if self._items:
                return self._items.popleft()
            return None

    def __iter__(self) -> Iterator[Message]:
        while True:
            message = self.get()
            if message is None:
                return
            yield message


class Broker(ABC):
    """Publishes messages to topics and hands out subscriptions."""

    @abstractmethod
    def publish(self, topic: str, key: str, value: bytes) -> None:
        """Send ``value`` to ``topic``; ``key`` may be used for partitioning."""

    @abstractmethod
    def subscribe(self, topic: str, group_id: str) -> Subscription:
        """Return a subscription receiving messages published to ``topic``."""

    @abstractmethod
    def close(self) -> None:
        """Shut the broker down."""

    def __enter__(self) -> Broker:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class InMemoryBroker(Broker):
    """Fan-out broker for local runs: every subscriber of a topic gets each message.

    Keys and group ids are ignored. When a subscriber's buffer is full the
    message is dropped for that subscriber.
    """

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[Subscription]] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def publish(self, topic: str, key: str, value: bytes) -> None:
        with self._lock:
            if self._closed:
                raise BrokerClosedError()
            if self.verbose:
                print(f"[InMemoryBroker] Publishing to topic '{topic}': "
                      f"{len(value)} bytes (key: {key})")
            message = Message(
                topic=topic,
                key=key,
                value=value,
                timestamp=int(time.time() * 1000),
            )
            for subscription in self._subscribers.get(topic, ()):
                if not subscription._offer(message) and self.verbose:
                    print(f"[InMemoryBroker] Warning: channel buffer full for topic "
                          f"'{topic}', message dropped")

    def subscribe(self, topic: str, group_id: str) -> Subscription:
        with self._lock:
            if self._closed:
                raise BrokerClosedError()
            subscription = Subscription(topic, group_id)
            self._subscribers.setdefault(topic, []).append(subscription)
            if self.verbose:
                print(f"[InMemoryBroker] New subscriber for topic '{topic}' (group: {group_id})")
            return subscription

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for subscriptions in self._subscribers.values():
                for subscription in subscriptions:
                    subscription._close()
            self._subscribers.clear()