from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payment_service.domain import TransactionRecord
from payment_service.exceptions import (
    DuplicateReferenceError,
    StoreFailureError,
    TransactionNotFoundError,
)
from payment_service.models import Transaction
from payment_service.unit_of_work import Scope


class SqlTransactionLog:
    """Журнал транзакций: только вставка и чтение по reference."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def append(
        self, scope: Scope, transaction: TransactionRecord
    ) -> None:
        """
        Записать транзакцию в рамках scope.

        Уникальность reference_id гарантирует ограничение в БД, поэтому
        гонка двух переводов с одним reference тоже будет поймана здесь.
        """
        scope.ensure_open()
        scope.session.add(
            Transaction(
                id=transaction.id,
                reference_id=transaction.reference,
                sender_id=transaction.sender_id,
                receiver_id=transaction.receiver_id,
                amount=transaction.amount,
                status=transaction.status,
                created_at=transaction.created_at,
            )
        )
        try:
            await scope.session.flush()
        except IntegrityError as e:
            if "reference_id" in str(e.orig):
                raise DuplicateReferenceError(transaction.reference) from e
            raise StoreFailureError(f"failed to append transaction: {e}") from e
        except SQLAlchemyError as e:
            raise StoreFailureError(f"failed to append transaction: {e}") from e

    async def find_by_reference(self, reference: str) -> TransactionRecord:
        query = select(Transaction).where(Transaction.reference_id == reference)
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                transaction = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreFailureError(f"failed to read transaction: {e}") from e

        if transaction is None:
            raise TransactionNotFoundError(reference)
        return TransactionRecord(
            id=transaction.id,
            reference=transaction.reference_id,
            sender_id=transaction.sender_id,
            receiver_id=transaction.receiver_id,
            amount=transaction.amount,
            status=transaction.status,
            created_at=transaction.created_at,
        )
