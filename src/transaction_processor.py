import logging
from typing import Optional, Tuple

from models import Transaction, TransactionType, ClientAccount, ProcessingResult
from state_manager import StateManager

logger = logging.getLogger(__name__)


class TransactionProcessor:
    """
    Applies ledger events to the account store.

    Business-rule violations never raise: each handler returns a
    ProcessingResult and leaves the store untouched on rejection.
    Caller is responsible for holding the client lock in worker mode.
    """

    def __init__(self, state: StateManager):
        self._state = state

    def process_transaction(self, transaction: Transaction) -> ProcessingResult:
        """
        Process a single transaction.

        Returns:
            APPLIED: the event changed the account and was recorded in its history
            anything else: the reason the event was dropped
        """
        match transaction.transaction_type:
            case TransactionType.DEPOSIT:
                result = self.apply_deposit(transaction)
            case TransactionType.WITHDRAWAL:
                result = self.apply_withdrawal(transaction)
            case TransactionType.DISPUTE:
                result = self.apply_dispute(transaction)
            case TransactionType.RESOLVE:
                result = self.apply_resolve(transaction)
            case TransactionType.CHARGEBACK:
                result = self.apply_chargeback(transaction)

        if not result.applied:
            logger.info(f"Dropped {transaction}: {result.value}")
        return result

    def apply_deposit(self, transaction: Transaction) -> ProcessingResult:
        account = self._state.get_account(transaction.client_id, require_unlocked=False)

        if account is None:
            self._state.open_account(transaction)
            return ProcessingResult.APPLIED

        if account.locked:
            return ProcessingResult.ACCOUNT_LOCKED

        account.credit(transaction.amount)
        account.record(transaction)
        return ProcessingResult.APPLIED

    def apply_withdrawal(self, transaction: Transaction) -> ProcessingResult:
        account, result = self._find_account(transaction)
        if account is None:
            return result

        if account.available < transaction.amount or account.total < transaction.amount:
            return ProcessingResult.INSUFFICIENT_FUNDS

        account.debit(transaction.amount)
        account.record(transaction)
        return ProcessingResult.APPLIED

    def apply_dispute(self, transaction: Transaction) -> ProcessingResult:
        account, original, result = self._find_referenced(transaction)
        if original is None:
            return result

        if original.disputed:
            return ProcessingResult.ALREADY_DISPUTED

        if account.available < original.amount:
            return ProcessingResult.INSUFFICIENT_FUNDS

        account.hold(original.amount)
        original.disputed = True
        account.record(transaction)
        return ProcessingResult.APPLIED

    def apply_resolve(self, transaction: Transaction) -> ProcessingResult:
        account, original, result = self._find_referenced(transaction)
        if original is None:
            return result

        if not original.disputed:
            return ProcessingResult.NOT_DISPUTED

        account.release_hold(original.amount)
        original.disputed = False
        account.record(transaction)
        return ProcessingResult.APPLIED

    def apply_chargeback(self, transaction: Transaction) -> ProcessingResult:
        account, original, result = self._find_referenced(transaction)
        if original is None:
            return result

        if not original.disputed:
            return ProcessingResult.NOT_DISPUTED

        if original.transaction_type == TransactionType.DEPOSIT:
            account.remove_held(original.amount)
        else:
            # Reversed withdrawal: the hold goes back to available and the
            # withdrawn funds are credited on top, raising total by the amount.
            account.release_hold(original.amount)
            account.credit(original.amount)

        original.disputed = False
        account.record(transaction)
        account.locked = True
        logger.info(f"Client {account.client_id} locked by chargeback of tx {original.transaction_id}")
        return ProcessingResult.APPLIED

    def _find_account(self, transaction: Transaction) -> Tuple[Optional[ClientAccount], ProcessingResult]:
        account = self._state.get_account(transaction.client_id, require_unlocked=True)
        if account is not None:
            return account, ProcessingResult.APPLIED
        if self._state.has_account(transaction.client_id):
            return None, ProcessingResult.ACCOUNT_LOCKED
        return None, ProcessingResult.UNKNOWN_CLIENT

    def _find_referenced(self, transaction: Transaction) -> Tuple[Optional[ClientAccount], Optional[Transaction], ProcessingResult]:
        """Resolve the unlocked account and the deposit/withdrawal a dispute-family event refers to."""
        account, result = self._find_account(transaction)
        if account is None:
            return None, None, result

        original = account.find_transaction(transaction.transaction_id)
        if original is None:
            return account, None, ProcessingResult.UNKNOWN_TRANSACTION

        return account, original, ProcessingResult.APPLIED
