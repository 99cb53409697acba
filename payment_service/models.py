import uuid

from sqlalchemy import (
    BigInteger, CheckConstraint, Column, DateTime, Integer, String,
    UniqueConstraint, func
)

from payment_service.database import Base


class Wallet(Base):
    """
    Модель таблицы 'wallets'.
    У каждого пользователя ровно один кошелек; баланс хранится
    в минимальных единицах валюты и не может быть отрицательным.
    """
    __tablename__ = "wallets"
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_wallets_user_id"),
        CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
    )

    id = Column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = Column(String(36), nullable=False)
    balance = Column(BigInteger, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"<Wallet(user_id='{self.user_id}', balance={self.balance}, "
            f"version={self.version})>"
        )


class Transaction(Base):
    """
    Модель таблицы 'transactions'.
    Запись только добавляется: reference_id - ключ идемпотентности перевода.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint("reference_id", name="uq_transactions_reference_id"),
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )

    id = Column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    reference_id = Column(String(255), nullable=False)
    sender_id = Column(String(36), nullable=False)
    receiver_id = Column(String(36), nullable=False)
    amount = Column(BigInteger, nullable=False)
    status = Column(String(50), nullable=False)
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction(reference_id='{self.reference_id}', "
            f"amount={self.amount}, status='{self.status}')>"
        )
