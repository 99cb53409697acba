import logging
from enum import Enum
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payment_service.exceptions import ScopeClosedError, StoreFailureError

logger = logging.getLogger(__name__)


class ScopeState(str, Enum):
    OPEN = "open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class Scope:
    """
    Дескриптор атомарной области (unit of work).

    Операции хранилища, изменяющие данные, принимают scope и допустимы
    только пока он открыт. Scope создается только через UnitOfWork.begin().
    """

    def __init__(self, session: Optional[AsyncSession] = None):
        self.session = session
        self.state = ScopeState.OPEN

    @property
    def is_open(self) -> bool:
        return self.state is ScopeState.OPEN

    def ensure_open(self) -> None:
        if not self.is_open:
            raise ScopeClosedError()


class SqlUnitOfWork:
    """Unit of work поверх транзакции SQLAlchemy: один scope - одна сессия."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def begin(self) -> Scope:
        session = self._session_factory()
        try:
            await session.begin()
        except SQLAlchemyError as e:
            await session.close()
            raise StoreFailureError(f"failed to begin transaction: {e}") from e
        return Scope(session)

    async def commit(self, scope: Scope) -> None:
        """
        Фиксирует scope.

        При ошибке scope остается открытым, чтобы отложенный rollback
        вызывающей стороны завершил его.
        """
        scope.ensure_open()
        try:
            await scope.session.commit()
        except SQLAlchemyError as e:
            raise StoreFailureError(f"failed to commit transaction: {e}") from e
        scope.state = ScopeState.COMMITTED
        await scope.session.close()

    async def rollback(self, scope: Scope) -> None:
        """Откатывает scope. После успешного commit ничего не делает."""
        if not scope.is_open:
            return
        scope.state = ScopeState.ROLLED_BACK
        try:
            await scope.session.rollback()
        except SQLAlchemyError as e:
            logger.error("Rollback failed: %s", e)
            raise StoreFailureError(f"failed to rollback transaction: {e}") from e
        finally:
            await scope.session.close()
