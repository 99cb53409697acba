from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payment_service.domain import WalletSnapshot
from payment_service.exceptions import StoreFailureError, WalletNotFoundError
from payment_service.models import Wallet
from payment_service.unit_of_work import Scope


class SqlWalletRepository:
    """Репозиторий кошельков поверх SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def lock_wallet_for_update(
        self, scope: Scope, user_id: str
    ) -> WalletSnapshot:
        """
        Получить кошелек пользователя с блокировкой строки
        (SELECT FOR UPDATE) до конца scope.

        :param scope: Открытый scope
        :param user_id: ID пользователя
        :return: Снимок кошелька
        :raises WalletNotFoundError: Если кошелька нет
        """
        scope.ensure_open()
        query = (
            select(Wallet)
            .where(Wallet.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        try:
            result = await scope.session.execute(query)
        except SQLAlchemyError as e:
            raise StoreFailureError(f"failed to lock wallet: {e}") from e

        wallet = result.scalar_one_or_none()
        if wallet is None:
            raise WalletNotFoundError(user_id)
        return self._to_snapshot(wallet)

    async def apply_balance_delta(
        self, scope: Scope, wallet_id: str, delta: int
    ) -> None:
        """
        Прибавить delta к балансу и увеличить version.
        Достаточность средств не проверяется: это делает вызывающий код
        по снимку, полученному под блокировкой.
        """
        scope.ensure_open()
        stmt = (
            update(Wallet)
            .where(Wallet.id == wallet_id)
            .values(
                balance=Wallet.balance + delta,
                version=Wallet.version + 1,
                updated_at=func.now()
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await scope.session.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreFailureError(f"failed to update balance: {e}") from e

        if result.rowcount == 0:
            raise StoreFailureError(f"wallet {wallet_id} disappeared")

    async def credit_wallet(
        self, scope: Scope, user_id: str, amount: int
    ) -> None:
        """Пополнение одним условным UPDATE по user_id."""
        scope.ensure_open()
        stmt = (
            update(Wallet)
            .where(Wallet.user_id == user_id)
            .values(
                balance=Wallet.balance + amount,
                version=Wallet.version + 1,
                updated_at=func.now()
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await scope.session.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreFailureError(f"failed to credit wallet: {e}") from e

        if result.rowcount == 0:
            raise WalletNotFoundError(user_id)

    async def create_wallet(
        self, scope: Scope, user_id: str, balance: int = 0
    ) -> WalletSnapshot:
        """
        Создать кошелек пользователя.

        :raises StoreFailureError: Если кошелек у пользователя уже есть
        """
        scope.ensure_open()
        wallet = Wallet(user_id=user_id, balance=balance, version=0)
        scope.session.add(wallet)
        try:
            await scope.session.flush()
            await scope.session.refresh(wallet)
        except IntegrityError as e:
            raise StoreFailureError(
                f"wallet for user {user_id} already exists"
            ) from e
        except SQLAlchemyError as e:
            raise StoreFailureError(f"failed to create wallet: {e}") from e
        return self._to_snapshot(wallet)

    async def get_wallet_by_user(self, user_id: str) -> WalletSnapshot:
        """Чтение без блокировки и без scope."""
        query = select(Wallet).where(Wallet.user_id == user_id)
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                wallet = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreFailureError(f"failed to read wallet: {e}") from e

        if wallet is None:
            raise WalletNotFoundError(user_id)
        return self._to_snapshot(wallet)

    @staticmethod
    def _to_snapshot(model: Wallet) -> WalletSnapshot:
        return WalletSnapshot(
            id=model.id,
            user_id=model.user_id,
            balance=model.balance,
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
