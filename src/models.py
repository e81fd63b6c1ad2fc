import threading
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"


AMOUNT_BEARING_TYPES = (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class ProcessingResult(Enum):
    APPLIED = "applied"
    UNKNOWN_CLIENT = "unknown_client"
    ACCOUNT_LOCKED = "account_locked"
    UNKNOWN_TRANSACTION = "unknown_transaction"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    ALREADY_DISPUTED = "already_disputed"
    NOT_DISPUTED = "not_disputed"

    @property
    def applied(self) -> bool:
        return self is ProcessingResult.APPLIED


@dataclass
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None
    disputed: bool = field(default=False, compare=False)

    def __post_init__(self):
        if self.transaction_type in AMOUNT_BEARING_TYPES:
            if self.amount is None:
                raise ValueError(f"{self.transaction_type.value} tx {self.transaction_id} has no amount")
            if self.amount < 0:
                raise ValueError(f"{self.transaction_type.value} tx {self.transaction_id} has negative amount {self.amount}")

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass
class ClientAccount:
    """
    Balances of a single client plus the history used to resolve disputes.

    `total` is derived, so `total == available + held` can never drift.
    """

    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False
    history: List[Transaction] = field(default_factory=list, repr=False)
    _transactions: Dict[int, Transaction] = field(default_factory=dict, repr=False, compare=False)

    @property
    def total(self) -> Decimal:
        return self.available + self.held

    def credit(self, amount: Decimal) -> None:
        self.available += amount

    def debit(self, amount: Decimal) -> None:
        self.available -= amount

    def hold(self, amount: Decimal) -> None:
        self.available -= amount
        self.held += amount

    def release_hold(self, amount: Decimal) -> None:
        self.held -= amount
        self.available += amount

    def remove_held(self, amount: Decimal) -> None:
        self.held -= amount

    def record(self, transaction: Transaction) -> None:
        """Append an applied event to the history.

        Deposits and withdrawals also become disputable by id; the first
        transaction seen with a given id keeps it.
        """
        self.history.append(transaction)
        if transaction.transaction_type in AMOUNT_BEARING_TYPES:
            self._transactions.setdefault(transaction.transaction_id, transaction)

    def find_transaction(self, transaction_id: int) -> Optional[Transaction]:
        return self._transactions.get(transaction_id)


class ProcessingStats:
    """Thread-safe counters for tracking processing statistics."""

    def __init__(self):
        self._lock = threading.Lock()
        self.applied = 0
        self.rejected: Counter = Counter()

    def record(self, result: ProcessingResult) -> None:
        with self._lock:
            if result.applied:
                self.applied += 1
            else:
                self.rejected[result] += 1

    @property
    def total_rejected(self) -> int:
        return sum(self.rejected.values())

    def __str__(self) -> str:
        reasons = ", ".join(f"{result.value}={count}" for result, count in sorted(self.rejected.items(), key=lambda item: item[0].value))
        return f"Applied: {self.applied}, Rejected: {self.total_rejected}" + (f" ({reasons})" if reasons else "")
