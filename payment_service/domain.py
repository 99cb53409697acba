"""Доменные записи платёжного сервиса, независимые от ORM."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

# Предел колонки BigInteger для сумм и балансов
MAX_BALANCE = 2 ** 63 - 1


class TransactionStatus(str, Enum):
    """Статусы транзакции. Движок создает только COMPLETED."""

    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class WalletSnapshot:
    id: str
    user_id: str
    balance: int
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    id: str
    reference: str
    sender_id: str
    receiver_id: str
    amount: int
    status: str
    created_at: datetime


@dataclass(frozen=True, slots=True)
class TransferResult:
    transaction_id: str
    reference: str
    amount: int
    status: str
    created_at: datetime


@dataclass(frozen=True, slots=True)
class TopUpResult:
    user_id: str
    amount: int
    new_balance: int
