"""
Создание кошелька пользователю.
Кошельки заводятся вне API переводов, например:
    python init_wallet.py user-1 --balance 1000
"""
import argparse
import asyncio
import sys

from payment_service.database import AsyncSessionLocal, engine
from payment_service.exceptions import LedgerError
from payment_service.ledger import LedgerEngine


async def create_wallet(user_id: str, balance: int) -> int:
    """Создать кошелек и вывести результат."""
    ledger = LedgerEngine.with_session_factory(AsyncSessionLocal)
    try:
        wallet = await ledger.create_wallet(user_id, balance)
    except LedgerError as e:
        print(f"Не удалось создать кошелек: {e.message}")
        return 1
    finally:
        await engine.dispose()

    print(
        f"Кошелек {wallet.id} создан для {wallet.user_id}, "
        f"баланс {wallet.balance}"
    )
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Создать кошелек")
    parser.add_argument("user_id")
    parser.add_argument("--balance", type=int, default=0)
    args = parser.parse_args()
    return asyncio.run(create_wallet(args.user_id, args.balance))


if __name__ == "__main__":
    sys.exit(main())
