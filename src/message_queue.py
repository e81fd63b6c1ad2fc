from queue import Queue
from typing import Iterator, List, Optional

from models import Transaction

# Marks the end of a partition's stream
_END_OF_STREAM = None


class PartitionedQueue:
    """
    One FIFO per consumer, with every client pinned to a single partition.

    Routing by client id keeps each client's transactions in publish order
    no matter how many consumers drain the partitions.
    """

    def __init__(self, num_partitions: int):
        if num_partitions < 1:
            raise ValueError(f"num_partitions must be at least 1, got {num_partitions}")
        self._partitions: List[Queue[Optional[Transaction]]] = [Queue() for _ in range(num_partitions)]
        self._closed = False

    @property
    def num_partitions(self) -> int:
        return len(self._partitions)

    def partition_for(self, client_id: int) -> int:
        return client_id % len(self._partitions)

    def publish(self, transaction: Transaction) -> None:
        """Append to the partition owning the transaction's client."""
        if self._closed:
            raise RuntimeError("Cannot publish to a closed queue")
        self._partitions[self.partition_for(transaction.client_id)].put(transaction)

    def close(self) -> None:
        """Signal no more transactions will be published. Idempotent."""
        if self._closed:
            return
        self._closed = True
        for partition in self._partitions:
            partition.put(_END_OF_STREAM)

    def consume(self, partition: int) -> Iterator[Transaction]:
        """Yield a partition's transactions in order, blocking until close()."""
        queue = self._partitions[partition]
        while True:
            transaction = queue.get()
            if transaction is _END_OF_STREAM:
                return
            yield transaction
