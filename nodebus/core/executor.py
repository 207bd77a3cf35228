"""
Node threads: run several nodes side by side, one event loop per thread.

Nodes on different threads share nothing but the topic bus.
"""
from threading import Thread
from typing import Iterable, List

from nodebus.core.node import Node
from nodebus.utils.logger import Logger


class NodeThread(Thread):
    """Spins a single node on a daemon thread until the node is shut down."""

    def __init__(self, node: Node):
        super().__init__(name=f"NodeThread-{node.name}", daemon=True)
        self.node = node
        self.logger = Logger("NodeThread")

    def run(self) -> None:
        self.logger.debug(f"Spinning '{self.node.name}'")
        self.node.spin()
        self.logger.debug(f"'{self.node.name}' stopped")

    def stop(self, timeout: float = 2.0) -> None:
        """Request shutdown and wait for the in-flight callback to finish."""
        self.node.shutdown()
        if self.is_alive():
            self.join(timeout=timeout)


def start_threads(nodes: Iterable[Node]) -> List[NodeThread]:
    """Start one NodeThread per node and return them."""
    threads = [NodeThread(node) for node in nodes]
    for thread in threads:
        thread.start()
    return threads


def stop_threads(threads: Iterable[NodeThread], timeout: float = 2.0) -> None:
    threads = list(threads)
    for thread in threads:
        thread.node.shutdown()
    for thread in threads:
        if thread.is_alive():
            thread.join(timeout=timeout)
