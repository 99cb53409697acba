"""
Хранилище в памяти процесса: кошельки, журнал транзакций и unit of work.

Повторяет семантику реляционного бэкенда: блокировка строки держится
до конца scope, изменения видны снаружи только после commit, а
reference резервируется при вставке, как уникальный индекс.
"""
import asyncio
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from payment_service.domain import TransactionRecord, WalletSnapshot
from payment_service.exceptions import (
    DuplicateReferenceError,
    StoreFailureError,
    TransactionNotFoundError,
    WalletNotFoundError,
)
from payment_service.unit_of_work import Scope, ScopeState


class MemoryScope(Scope):
    def __init__(self):
        super().__init__()
        self.locks: Dict[str, asyncio.Lock] = {}
        self.new_wallets: Dict[str, WalletSnapshot] = {}
        self.deltas: Dict[str, List[int]] = {}
        self.transactions: List[TransactionRecord] = []


class InMemoryLedgerStore:
    """Реализует WalletStore, TransactionLog и UnitOfWork одновременно."""

    def __init__(self):
        self._wallets: Dict[str, WalletSnapshot] = {}
        self._row_locks: Dict[str, asyncio.Lock] = {}
        self._transactions: Dict[str, TransactionRecord] = {}
        self._reserved_references: Set[str] = set()
        self._reserved_users: Set[str] = set()

    # --- unit of work ---

    async def begin(self) -> MemoryScope:
        await self._io()
        return MemoryScope()

    async def commit(self, scope: MemoryScope) -> None:
        scope.ensure_open()
        await self._io()
        now = datetime.now(timezone.utc)

        # Между этими строками нет await: commit атомарен для event loop
        for user_id, wallet in scope.new_wallets.items():
            self._wallets[user_id] = wallet
            self._reserved_users.discard(user_id)
        for wallet_id, deltas in scope.deltas.items():
            user_id = self._user_of_wallet(wallet_id)
            wallet = self._wallets[user_id]
            self._wallets[user_id] = replace(
                wallet,
                balance=wallet.balance + sum(deltas),
                version=wallet.version + len(deltas),
                updated_at=now,
            )
        for transaction in scope.transactions:
            self._transactions[transaction.reference] = transaction
            self._reserved_references.discard(transaction.reference)

        scope.state = ScopeState.COMMITTED
        self._release(scope)

    async def rollback(self, scope: MemoryScope) -> None:
        if not scope.is_open:
            return
        scope.state = ScopeState.ROLLED_BACK
        self._reserved_users.difference_update(scope.new_wallets)
        self._reserved_references.difference_update(
            t.reference for t in scope.transactions
        )
        self._release(scope)

    # --- wallet store ---

    async def lock_wallet_for_update(
        self, scope: MemoryScope, user_id: str
    ) -> WalletSnapshot:
        scope.ensure_open()
        await self._io()
        if user_id not in self._wallets and user_id not in scope.new_wallets:
            raise WalletNotFoundError(user_id)
        await self._acquire(scope, user_id)
        return self._current(scope, user_id)

    async def apply_balance_delta(
        self, scope: MemoryScope, wallet_id: str, delta: int
    ) -> None:
        scope.ensure_open()
        await self._io()
        user_id = self._user_of_wallet(wallet_id, scope)
        await self._acquire(scope, user_id)
        self._stage_delta(scope, user_id, delta)

    async def credit_wallet(
        self, scope: MemoryScope, user_id: str, amount: int
    ) -> None:
        scope.ensure_open()
        await self._io()
        if user_id not in self._wallets and user_id not in scope.new_wallets:
            raise WalletNotFoundError(user_id)
        await self._acquire(scope, user_id)
        self._stage_delta(scope, user_id, amount)

    async def create_wallet(
        self, scope: MemoryScope, user_id: str, balance: int = 0
    ) -> WalletSnapshot:
        scope.ensure_open()
        await self._io()
        if user_id in self._wallets or user_id in self._reserved_users:
            raise StoreFailureError(f"wallet for user {user_id} already exists")
        if balance < 0:
            raise StoreFailureError("wallet balance must not be negative")

        now = datetime.now(timezone.utc)
        wallet = WalletSnapshot(
            id=str(uuid.uuid4()),
            user_id=user_id,
            balance=balance,
            version=0,
            created_at=now,
            updated_at=now,
        )
        self._reserved_users.add(user_id)
        scope.new_wallets[user_id] = wallet
        await self._acquire(scope, user_id)
        return wallet

    async def get_wallet_by_user(self, user_id: str) -> WalletSnapshot:
        await self._io()
        wallet = self._wallets.get(user_id)
        if wallet is None:
            raise WalletNotFoundError(user_id)
        return wallet

    # --- transaction log ---

    async def append(
        self, scope: MemoryScope, transaction: TransactionRecord
    ) -> None:
        scope.ensure_open()
        await self._io()
        reference = transaction.reference
        if (
            reference in self._transactions
            or reference in self._reserved_references
        ):
            raise DuplicateReferenceError(reference)
        self._reserved_references.add(reference)
        scope.transactions.append(transaction)

    async def find_by_reference(self, reference: str) -> TransactionRecord:
        await self._io()
        transaction = self._transactions.get(reference)
        if transaction is None:
            raise TransactionNotFoundError(reference)
        return transaction

    # --- internals ---

    @staticmethod
    async def _io() -> None:
        # точка переключения, как у сетевого вызова к БД
        await asyncio.sleep(0)

    async def _acquire(self, scope: MemoryScope, user_id: str) -> None:
        if user_id in scope.locks:
            return
        lock = self._row_locks.setdefault(user_id, asyncio.Lock())
        await lock.acquire()
        scope.locks[user_id] = lock

    @staticmethod
    def _release(scope: MemoryScope) -> None:
        for lock in scope.locks.values():
            lock.release()
        scope.locks.clear()

    def _current(self, scope: MemoryScope, user_id: str) -> WalletSnapshot:
        wallet = scope.new_wallets.get(user_id) or self._wallets[user_id]
        deltas = scope.deltas.get(wallet.id, [])
        return replace(
            wallet,
            balance=wallet.balance + sum(deltas),
            version=wallet.version + len(deltas),
        )

    def _stage_delta(self, scope: MemoryScope, user_id: str, delta: int) -> None:
        current = self._current(scope, user_id)
        if current.balance + delta < 0:
            raise StoreFailureError(
                f"wallet {current.id} balance would become negative"
            )
        scope.deltas.setdefault(current.id, []).append(delta)

    def _user_of_wallet(
        self, wallet_id: str, scope: Optional[MemoryScope] = None
    ) -> str:
        candidates = list(self._wallets.values())
        if scope is not None:
            candidates.extend(scope.new_wallets.values())
        for wallet in candidates:
            if wallet.id == wallet_id:
                return wallet.user_id
        raise StoreFailureError(f"wallet {wallet_id} disappeared")
