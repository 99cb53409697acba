import logging
import uuid
from datetime import datetime, timezone
from typing import Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payment_service.domain import (
    MAX_BALANCE,
    TopUpResult,
    TransactionRecord,
    TransactionStatus,
    TransferResult,
    WalletSnapshot,
)
from payment_service.exceptions import (
    BalanceLimitError,
    DuplicateReferenceError,
    InsufficientBalanceError,
    InvalidAmountError,
    LedgerError,
    SamePartyError,
    TransactionNotFoundError,
)
from payment_service.repositories.protocols import (
    TransactionLog,
    UnitOfWork,
    WalletStore,
)
from payment_service.repositories.transaction_repository import (
    SqlTransactionLog
)
from payment_service.repositories.wallet_repository import SqlWalletRepository
from payment_service.unit_of_work import Scope, SqlUnitOfWork

logger = logging.getLogger(__name__)


class LedgerEngine:
    """
    Движок переводов и пополнений.

    Все изменения балансов выполняются внутри одного scope unit of work:
    либо применяются все изменения операции, либо ни одного. Повторных
    попыток движок не делает, ошибка возвращается вызывающей стороне.
    """

    def __init__(
        self,
        wallets: WalletStore,
        transactions: TransactionLog,
        unit_of_work: UnitOfWork,
    ):
        self._wallets = wallets
        self._transactions = transactions
        self._uow = unit_of_work

    @classmethod
    def with_session_factory(
        cls, session_factory: async_sessionmaker[AsyncSession]
    ) -> "LedgerEngine":
        return cls(
            SqlWalletRepository(session_factory),
            SqlTransactionLog(session_factory),
            SqlUnitOfWork(session_factory),
        )

    async def transfer(
        self,
        sender_id: str,
        receiver_id: str,
        amount: int,
        reference: str,
    ) -> TransferResult:
        """
        Перевести amount от sender_id к receiver_id под ключом reference.

        :raises InvalidAmountError: amount <= 0
        :raises SamePartyError: Отправитель совпадает с получателем
        :raises DuplicateReferenceError: reference уже использован
        :raises WalletNotFoundError: Нет кошелька отправителя или получателя
        :raises InsufficientBalanceError: Недостаточно средств у отправителя
        :raises BalanceLimitError: Баланс получателя превысил бы предел
        :raises StoreFailureError: Ошибка хранилища
        """
        if amount <= 0:
            raise InvalidAmountError(amount)
        if sender_id == receiver_id:
            raise SamePartyError(sender_id)

        # Предварительная проверка только экономит работу; гарантию дает
        # уникальный индекс при append
        if await self._reference_exists(reference):
            logger.warning("Transfer %s rejected: duplicate reference", reference)
            raise DuplicateReferenceError(reference)

        transaction = TransactionRecord(
            id=str(uuid.uuid4()),
            reference=reference,
            sender_id=sender_id,
            receiver_id=receiver_id,
            amount=amount,
            status=TransactionStatus.COMPLETED.value,
            created_at=datetime.now(timezone.utc),
        )

        scope = await self._uow.begin()
        try:
            sender, receiver = await self._lock_pair(
                scope, sender_id, receiver_id
            )
            if sender.balance < amount:
                raise InsufficientBalanceError(
                    sender_id, sender.balance, amount
                )
            if receiver.balance > MAX_BALANCE - amount:
                raise BalanceLimitError(receiver_id, receiver.balance, amount)

            await self._wallets.apply_balance_delta(scope, sender.id, -amount)
            await self._wallets.apply_balance_delta(scope, receiver.id, amount)
            await self._transactions.append(scope, transaction)
            await self._uow.commit(scope)
        except LedgerError as e:
            logger.warning("Transfer %s rejected: %s", reference, e.message)
            raise
        finally:
            await self._uow.rollback(scope)

        logger.info(
            "Transfer %s completed: %s -> %s, amount=%d",
            reference, sender_id, receiver_id, amount
        )
        return TransferResult(
            transaction_id=transaction.id,
            reference=transaction.reference,
            amount=transaction.amount,
            status=transaction.status,
            created_at=transaction.created_at,
        )

    async def top_up(self, user_id: str, amount: int) -> TopUpResult:
        """
        Пополнить кошелек пользователя.

        Ключа идемпотентности нет: каждый вызов - отдельное зачисление.
        Строка блокируется до зачисления, чтобы проверить предел баланса.
        """
        if amount <= 0:
            raise InvalidAmountError(amount)

        scope = await self._uow.begin()
        try:
            current = await self._wallets.lock_wallet_for_update(
                scope, user_id
            )
            if current.balance > MAX_BALANCE - amount:
                raise BalanceLimitError(user_id, current.balance, amount)

            await self._wallets.credit_wallet(scope, user_id, amount)
            wallet = await self._wallets.lock_wallet_for_update(scope, user_id)
            await self._uow.commit(scope)
        except LedgerError as e:
            logger.warning("Top-up for %s rejected: %s", user_id, e.message)
            raise
        finally:
            await self._uow.rollback(scope)

        logger.info(
            "Top-up for %s completed: amount=%d, balance=%d",
            user_id, amount, wallet.balance
        )
        return TopUpResult(
            user_id=user_id, amount=amount, new_balance=wallet.balance
        )

    async def create_wallet(
        self, user_id: str, initial_balance: int = 0
    ) -> WalletSnapshot:
        """Завести кошелек пользователю (вне контракта переводов)."""
        if initial_balance < 0:
            raise InvalidAmountError(initial_balance)

        scope = await self._uow.begin()
        try:
            wallet = await self._wallets.create_wallet(
                scope, user_id, initial_balance
            )
            await self._uow.commit(scope)
        finally:
            await self._uow.rollback(scope)

        logger.info("Wallet %s created for user %s", wallet.id, user_id)
        return wallet

    async def get_transaction_by_reference(
        self, reference: str
    ) -> TransactionRecord:
        return await self._transactions.find_by_reference(reference)

    async def get_wallet(self, user_id: str) -> WalletSnapshot:
        return await self._wallets.get_wallet_by_user(user_id)

    async def _reference_exists(self, reference: str) -> bool:
        try:
            await self._transactions.find_by_reference(reference)
        except TransactionNotFoundError:
            return False
        return True

    async def _lock_pair(
        self, scope: Scope, sender_id: str, receiver_id: str
    ) -> Tuple[WalletSnapshot, WalletSnapshot]:
        # Строки блокируются в порядке user_id, а не ролей: встречные
        # переводы A->B и B->A не могут взаимно заблокироваться
        locked = {}
        for user_id in sorted((sender_id, receiver_id)):
            locked[user_id] = await self._wallets.lock_wallet_for_update(
                scope, user_id
            )
        return locked[sender_id], locked[receiver_id]
