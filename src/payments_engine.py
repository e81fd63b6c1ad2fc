import csv
import logging
import threading
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Iterator, List, Optional

from models import Transaction, TransactionType, ClientAccount, ProcessingStats, AMOUNT_BEARING_TYPES
from message_queue import PartitionedQueue
from state_manager import StateManager
from transaction_processor import TransactionProcessor

logger = logging.getLogger(__name__)

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1


class MalformedRecordError(ValueError):
    """An input record cannot be turned into a Transaction. Fatal to the run."""


class PaymentsEngine:
    """
    Orchestrates transaction processing with publisher-consumer pattern.
    Events are partitioned by client so each client's events are applied
    by one consumer, in input order.
    """

    def __init__(self, num_consumers: int = 4):
        if num_consumers < 1:
            raise ValueError(f"num_consumers must be at least 1, got {num_consumers}")
        self._num_consumers = num_consumers
        self._state = StateManager()
        self._processor = TransactionProcessor(self._state)
        self.stats = ProcessingStats()

    def process_file(self, filepath: str) -> Dict[int, ClientAccount]:
        """Process CSV file and return final account states."""
        return self.process_transactions(read_transactions(filepath))

    def process_transactions(self, transactions: Iterable[Transaction]) -> Dict[int, ClientAccount]:
        """Apply transactions in order and return final account states."""
        logger.info(f"Starting processing with {self._num_consumers} consumers")

        queue = PartitionedQueue(self._num_consumers)
        worker_errors: List[BaseException] = []
        consumer_threads = []
        for partition in range(queue.num_partitions):
            consumer_thread = threading.Thread(
                target=self._consume_transactions,
                args=(queue, partition, worker_errors),
            )
            consumer_thread.start()
            consumer_threads.append(consumer_thread)

        # Publishing runs in the caller's thread so parse errors propagate.
        try:
            for transaction in transactions:
                queue.publish(transaction)
        finally:
            queue.close()
            for consumer_thread in consumer_threads:
                consumer_thread.join()

        if worker_errors:
            raise worker_errors[0]

        logger.info(f"Processing complete. {self.stats}")
        return self._state.get_all_accounts()

    def _consume_transactions(self, queue: PartitionedQueue, partition: int, worker_errors: List[BaseException]) -> None:
        """Consumer loop: apply one partition's transactions to state."""
        try:
            for transaction in queue.consume(partition):
                lock = self._state.get_client_lock(transaction.client_id)
                with lock:
                    result = self._processor.process_transaction(transaction)
                self.stats.record(result)
        except Exception as e:
            logger.exception(f"Consumer for partition {partition} failed")
            worker_errors.append(e)


def read_transactions(filepath: str) -> Iterator[Transaction]:
    """Read CSV and yield transactions in file order, skipping unknown kinds."""
    with open(filepath, "r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        rows = iter(reader)
        while True:
            try:
                row = next(rows)
            except StopIteration:
                return
            except UnicodeDecodeError as e:
                raise MalformedRecordError(f"{filepath} is not valid UTF-8: {e}") from e
            except csv.Error as e:
                raise MalformedRecordError(f"line {reader.line_num}: {e}") from e

            transaction = parse_csv_row(row, reader.line_num)
            if transaction:
                yield transaction


def parse_csv_row(row: Dict[Optional[str], object], line_number: int = 0) -> Optional[Transaction]:
    """
    Parse CSV row into Transaction.

    Returns None for a row whose type is not a ledger event.
    Raises MalformedRecordError for anything else that does not parse.
    """
    normalized = {}
    for key, value in row.items():
        # DictReader files surplus fields under None and pads short rows with None
        if key is None or value is None:
            continue
        normalized[key.strip().lower()] = str(value).strip()

    try:
        transaction_type_str = normalized["type"].lower()
        client_str = normalized["client"]
        transaction_str = normalized["tx"]
    except KeyError as e:
        raise MalformedRecordError(f"line {line_number}: missing column {e}") from e

    try:
        transaction_type = TransactionType(transaction_type_str)
    except ValueError:
        logger.warning(f"line {line_number}: skipping unknown transaction type {transaction_type_str!r}")
        return None

    client_id = _parse_id(client_str, "client", MAX_CLIENT_ID, line_number)
    transaction_id = _parse_id(transaction_str, "tx", MAX_TRANSACTION_ID, line_number)

    amount = None
    amount_str = normalized.get("amount", "")
    if transaction_type in AMOUNT_BEARING_TYPES and amount_str:
        try:
            amount = Decimal(amount_str)
        except InvalidOperation as e:
            raise MalformedRecordError(f"line {line_number}: invalid amount {amount_str!r}") from e
        if not amount.is_finite():
            raise MalformedRecordError(f"line {line_number}: invalid amount {amount_str!r}")

    try:
        return Transaction(
            transaction_type=transaction_type,
            client_id=client_id,
            transaction_id=transaction_id,
            amount=amount,
        )
    except ValueError as e:
        raise MalformedRecordError(f"line {line_number}: {e}") from e


def _parse_id(value: str, column: str, upper_bound: int, line_number: int) -> int:
    try:
        parsed = int(value)
    except ValueError as e:
        raise MalformedRecordError(f"line {line_number}: invalid {column} id {value!r}") from e
    if not 0 <= parsed <= upper_bound:
        raise MalformedRecordError(f"line {line_number}: {column} id {parsed} out of range")
    return parsed
