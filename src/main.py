import sys
import logging
from decimal import Decimal
from typing import Dict, TextIO

from models import ClientAccount
from payments_engine import PaymentsEngine, MalformedRecordError

AMOUNT_PRECISION = Decimal("0.0001")


def format_decimal(value: Decimal) -> str:
    """Format decimal with exactly 4 decimal places."""
    return f"{value.quantize(AMOUNT_PRECISION):f}"


def write_accounts(accounts: Dict[int, ClientAccount], stream: TextIO) -> None:
    """Write the account snapshot as CSV, ordered by client id."""
    print("client,available,held,total,locked", file=stream)
    for client_id in sorted(accounts.keys()):
        account = accounts[client_id]
        print(
            f"{client_id},"
            f"{format_decimal(account.available)},"
            f"{format_decimal(account.held)},"
            f"{format_decimal(account.total)},"
            f"{str(account.locked).lower()}",
            file=stream,
        )


def main():
    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    if len(sys.argv) != 2:
        print("Usage: python main.py <input.csv>", file=sys.stderr)
        sys.exit(1)

    filepath = sys.argv[1]
    engine = PaymentsEngine()
    try:
        accounts = engine.process_file(filepath)
    except (MalformedRecordError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)

    write_accounts(accounts, sys.stdout)


if __name__ == "__main__":
    main()
