# payment_service/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from payment_service.config import settings
from payment_service.database import AsyncSessionLocal, engine, get_db
from payment_service.exceptions import (
    LedgerError,
    NotFoundError,
    StoreFailureError,
)
from payment_service.ledger import LedgerEngine
from payment_service.schemas import (
    ErrorResponse,
    TopUpRequest,
    TopUpResponse,
    TransactionResponse,
    TransferRequest,
    TransferResponse,
    WalletResponse,
)

logging.basicConfig(level=settings.LOG_LEVEL, format=settings.LOG_FORMAT)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Контекстный менеджер lifespan управляет событиями запуска и остановки.
    """
    logger.info("Starting up %s", settings.PROJECT_NAME)
    # Таблицы создаются через миграции Alembic
    yield
    logger.info("Shutting down...")
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="API переводов между кошельками пользователей",
    version="1.0.0",
    lifespan=lifespan
)


def get_ledger() -> LedgerEngine:
    """Движок переводов поверх основной БД."""
    return LedgerEngine.with_session_factory(AsyncSessionLocal)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def ledger_error_response(
    exc: LedgerError, not_found_status: int = 400
) -> JSONResponse:
    """
    Преобразует ошибку движка в HTTP-ответ.

    На путях записи NotFound пока отдается как 400, на путях чтения - 404.
    """
    if isinstance(exc, StoreFailureError):
        logger.error("Store failure: %s", exc.message, exc_info=exc)
        return error_response(500, "internal error")
    if isinstance(exc, NotFoundError):
        return error_response(not_found_status, exc.message)
    return error_response(400, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
):
    logger.warning(
        "Invalid request body on %s: %s", request.url.path, exc.errors()
    )
    return error_response(400, "invalid request body")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception on %s: %s", request.url.path, exc,
        exc_info=True
    )
    return error_response(500, "internal error")


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Проверяет, что приложение работает и может подключиться к БД."""
    try:
        await db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        return {
            "status": "unhealthy", "database": "disconnected", "error": str(e)
        }


@app.post(
    "/transfer",
    response_model=TransferResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Перевод между кошельками",
    description="""
    Атомарно списывает сумму с кошелька отправителя и зачисляет получателю.

    Особенности:
    - reference - ключ идемпотентности: повторный перевод с тем же
    reference отклоняется
    - Баланс отправителя проверяется под блокировкой строки
    - При любой ошибке ни один баланс не меняется
    """
)
async def transfer(
    payload: TransferRequest,
    ledger: LedgerEngine = Depends(get_ledger)
):
    """Перевод средств."""
    try:
        result = await ledger.transfer(
            sender_id=payload.sender_id,
            receiver_id=payload.receiver_id,
            amount=payload.amount,
            reference=payload.reference
        )
    except LedgerError as e:
        return ledger_error_response(e)

    return TransferResponse.model_validate(result)


@app.post(
    "/topup",
    response_model=TopUpResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Пополнение кошелька",
    description="Зачисляет сумму на кошелек. Повторный вызов зачисляет снова."
)
async def top_up(
    payload: TopUpRequest,
    ledger: LedgerEngine = Depends(get_ledger)
):
    """Пополнение кошелька."""
    try:
        result = await ledger.top_up(payload.user_id, payload.amount)
    except LedgerError as e:
        return ledger_error_response(e)

    return TopUpResponse.model_validate(result)


@app.get(
    "/transaction/{reference}",
    response_model=TransactionResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Получить транзакцию по reference"
)
async def get_transaction(
    reference: str,
    ledger: LedgerEngine = Depends(get_ledger)
):
    """Получение транзакции."""
    try:
        transaction = await ledger.get_transaction_by_reference(reference)
    except LedgerError as e:
        return ledger_error_response(e, not_found_status=404)

    return TransactionResponse(
        transaction_id=transaction.id,
        reference=transaction.reference,
        sender_id=transaction.sender_id,
        receiver_id=transaction.receiver_id,
        amount=transaction.amount,
        status=transaction.status,
        created_at=transaction.created_at
    )


@app.get(
    "/wallet/{user_id}",
    response_model=WalletResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Получить кошелек пользователя"
)
async def get_wallet(
    user_id: str,
    ledger: LedgerEngine = Depends(get_ledger)
):
    """Получение кошелька и его баланса."""
    try:
        wallet = await ledger.get_wallet(user_id)
    except LedgerError as e:
        return ledger_error_response(e, not_found_status=404)

    return WalletResponse(
        wallet_id=wallet.id,
        user_id=wallet.user_id,
        balance=wallet.balance,
        version=wallet.version,
        updated_at=wallet.updated_at
    )


@app.get("/")
async def root():
    """Корневой эндпоинт."""
    return {"message": "Payment Service is running"}
