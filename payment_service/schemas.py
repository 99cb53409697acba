from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt

from payment_service.domain import MAX_BALANCE


class TransferRequest(BaseModel):
    """Схема запроса на перевод."""

    sender_id: str = Field(min_length=1)
    receiver_id: str = Field(min_length=1)
    # Знак суммы проверяет движок, чтобы вернуть его сообщение об ошибке
    amount: StrictInt = Field(
        le=MAX_BALANCE, description="Сумма в минимальных единицах валюты"
    )
    reference: str = Field(
        min_length=1, max_length=255, description="Ключ идемпотентности"
    )


class TopUpRequest(BaseModel):
    """Схема запроса на пополнение."""

    user_id: str = Field(min_length=1)
    amount: StrictInt = Field(
        le=MAX_BALANCE, description="Сумма в минимальных единицах валюты"
    )


class TransferResponse(BaseModel):
    """Схема ответа на перевод."""

    model_config = ConfigDict(from_attributes=True)

    transaction_id: str
    reference: str
    amount: int
    status: str
    created_at: datetime


class TransactionResponse(BaseModel):
    """Схема ответа с информацией о транзакции."""

    transaction_id: str
    reference: str
    sender_id: str
    receiver_id: str
    amount: int
    status: str
    created_at: datetime


class TopUpResponse(BaseModel):
    """Схема ответа на пополнение."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    amount: int
    new_balance: int
    message: str = "Top-up successful"


class WalletResponse(BaseModel):
    """Схема ответа с информацией о кошельке."""

    wallet_id: str
    user_id: str
    balance: int
    version: int
    updated_at: Optional[datetime] = None


class ErrorResponse(BaseModel):
    error: str
