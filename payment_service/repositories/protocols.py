"""
Контракты хранилища, от которых зависит движок переводов.

Движок не знает о конкретном бэкенде: SQL-репозитории и хранилище
в памяти удовлетворяют этим протоколам структурно.
"""
from typing import Protocol

from payment_service.domain import TransactionRecord, WalletSnapshot
from payment_service.unit_of_work import Scope


class WalletStore(Protocol):
    async def lock_wallet_for_update(
        self, scope: Scope, user_id: str
    ) -> WalletSnapshot: ...

    async def apply_balance_delta(
        self, scope: Scope, wallet_id: str, delta: int
    ) -> None: ...

    async def credit_wallet(
        self, scope: Scope, user_id: str, amount: int
    ) -> None: ...

    async def create_wallet(
        self, scope: Scope, user_id: str, balance: int = 0
    ) -> WalletSnapshot: ...

    async def get_wallet_by_user(self, user_id: str) -> WalletSnapshot: ...


class TransactionLog(Protocol):
    async def append(
        self, scope: Scope, transaction: TransactionRecord
    ) -> None: ...

    async def find_by_reference(self, reference: str) -> TransactionRecord: ...


class UnitOfWork(Protocol):
    async def begin(self) -> Scope: ...

    async def commit(self, scope: Scope) -> None: ...

    async def rollback(self, scope: Scope) -> None: ...
