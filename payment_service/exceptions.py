"""Исключения платёжного движка."""


class LedgerError(Exception):
    """Базовый класс ошибок движка переводов."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidAmountError(LedgerError):
    """Сумма операции не положительна."""

    def __init__(self, amount: int):
        super().__init__("amount must be greater than zero")
        self.amount = amount


class SamePartyError(LedgerError):
    """Отправитель и получатель совпадают."""

    def __init__(self, user_id: str):
        super().__init__("cannot transfer to the same user")
        self.user_id = user_id


class DuplicateReferenceError(LedgerError):
    """Транзакция с таким reference уже записана."""

    def __init__(self, reference: str):
        super().__init__(f"reference {reference} already exists")
        self.reference = reference


class NotFoundError(LedgerError):
    """Запрошенный объект не существует."""


class WalletNotFoundError(NotFoundError):
    def __init__(self, user_id: str):
        super().__init__(f"wallet for user {user_id} not found")
        self.user_id = user_id


class TransactionNotFoundError(NotFoundError):
    def __init__(self, reference: str):
        super().__init__(f"transaction {reference} not found")
        self.reference = reference


class InsufficientBalanceError(LedgerError):
    """Баланс отправителя (прочитанный под блокировкой) меньше суммы."""

    def __init__(self, user_id: str, balance: int, amount: int):
        super().__init__("insufficient balance")
        self.user_id = user_id
        self.balance = balance
        self.amount = amount


class BalanceLimitError(LedgerError):
    """Зачисление превысило бы предельный баланс кошелька."""

    def __init__(self, user_id: str, balance: int, amount: int):
        super().__init__("balance limit exceeded")
        self.user_id = user_id
        self.balance = balance
        self.amount = amount


class StoreFailureError(LedgerError):
    """Ошибка хранилища: ввод-вывод, блокировка, ограничение, commit."""


class ScopeClosedError(StoreFailureError):
    """Операция хранилища вызвана вне открытого scope."""

    def __init__(self):
        super().__init__("unit of work scope is not open")
