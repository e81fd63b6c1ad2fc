import sys
import os
import threading
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from message_queue import PartitionedQueue
from models import Transaction, TransactionType


def make_deposit(client_id: int, transaction_id: int) -> Transaction:
    return Transaction(TransactionType.DEPOSIT, client_id=client_id, transaction_id=transaction_id, amount=Decimal("1"))


class TestPartitionedQueue:
    def test_client_always_maps_to_same_partition(self):
        queue = PartitionedQueue(3)
        assert queue.num_partitions == 3
        assert queue.partition_for(7) == queue.partition_for(7) == 1
        assert queue.partition_for(9) == 0

    def test_consume_yields_partition_in_publish_order(self):
        queue = PartitionedQueue(2)
        for transaction_id, client_id in enumerate([1, 2, 1, 3, 1], start=1):
            queue.publish(make_deposit(client_id, transaction_id))
        queue.close()

        odd = [t.transaction_id for t in queue.consume(queue.partition_for(1))]
        even = [t.transaction_id for t in queue.consume(queue.partition_for(2))]

        assert odd == [1, 3, 4, 5]
        assert even == [2]

    def test_close_ends_empty_partitions(self):
        queue = PartitionedQueue(4)
        queue.close()
        for partition in range(4):
            assert list(queue.consume(partition)) == []

    def test_close_is_idempotent(self):
        queue = PartitionedQueue(1)
        queue.publish(make_deposit(1, 1))
        queue.close()
        queue.close()
        assert [t.transaction_id for t in queue.consume(0)] == [1]

    def test_publish_after_close_fails(self):
        queue = PartitionedQueue(1)
        queue.close()
        with pytest.raises(RuntimeError, match="closed"):
            queue.publish(make_deposit(1, 1))

    def test_consumer_blocks_until_close(self):
        queue = PartitionedQueue(1)
        consumed = []
        consumer = threading.Thread(target=lambda: consumed.extend(queue.consume(0)))
        consumer.start()

        queue.publish(make_deposit(1, 1))
        queue.publish(make_deposit(1, 2))
        queue.close()
        consumer.join(timeout=5)

        assert not consumer.is_alive()
        assert [t.transaction_id for t in consumed] == [1, 2]

    def test_invalid_partition_count(self):
        with pytest.raises(ValueError, match="num_partitions"):
            PartitionedQueue(0)
