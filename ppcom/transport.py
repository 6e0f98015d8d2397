"""
PPCom Transport
===============
In-process topic bus connecting pose feeds, plugins and consumers.

Delivery is synchronous: publish() calls every subscriber of the topic
before returning. The last message of each topic is retained so that
late readers (tests, the CLI) can inspect it.
"""

import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

Callback = Callable[[Any], None]


def odometry_topic(node_name: str) -> str:
    return f"/{node_name}/ground_truth/odometry"


def topology_topic(node_name: str, output_topic: str = "ppcom") -> str:
    return f"/{node_name}/{output_topic}_topology"


def marker_topic(node_name: str) -> str:
    return f"/{node_name}/los_marker"


class MessageBus:
    """Named topics with any number of publishers and subscribers"""

    def __init__(self):
        self._subscribers: Dict[str, List[Callback]] = defaultdict(list)
        self._latest: Dict[str, Any] = {}
        self._lock = threading.Lock()

        # Statistics
        self.message_counts: Dict[str, int] = defaultdict(int)

    def advertise(self, topic: str) -> str:
        """Declare a topic; returns the topic name for convenience"""
        with self._lock:
            self._subscribers.setdefault(topic, [])
        return topic

    def subscribe(self, topic: str, callback: Callback):
        with self._lock:
            self._subscribers[topic].append(callback)

    def publish(self, topic: str, message: Any):
        with self._lock:
            self._latest[topic] = message
            self.message_counts[topic] += 1
            callbacks = list(self._subscribers.get(topic, ()))
        for callback in callbacks:
            callback(message)

    def latest(self, topic: str) -> Optional[Any]:
        return self._latest.get(topic)

    @property
    def topics(self) -> List[str]:
        return sorted(set(self._subscribers) | set(self._latest))
