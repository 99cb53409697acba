import pytest
from httpx import AsyncClient

from payment_service.ledger import LedgerEngine


@pytest.fixture
async def wallets(sql_ledger: LedgerEngine):
    """Кошельки alice (1000) и bob (200)."""
    await sql_ledger.create_wallet("alice", 1000)
    await sql_ledger.create_wallet("bob", 200)


class TestPaymentAPI:
    """Тесты эндпоинтов платёжного сервиса."""

    async def test_root(self, client: AsyncClient):
        response = await client.get("/")
        assert response.status_code == 200
        assert response.json() == {"message": "Payment Service is running"}

    async def test_health_check(self, client: AsyncClient):
        """Тест эндпоинта проверки здоровья."""
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"

    async def test_transfer(self, client: AsyncClient, wallets):
        """Успешный перевод меняет оба баланса."""
        response = await client.post(
            "/transfer",
            json={
                "sender_id": "alice",
                "receiver_id": "bob",
                "amount": 300,
                "reference": "ref-1",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["reference"] == "ref-1"
        assert data["amount"] == 300
        assert data["status"] == "completed"
        assert data["transaction_id"]
        assert data["created_at"]

        response = await client.get("/wallet/alice")
        assert response.json()["balance"] == 700
        response = await client.get("/wallet/bob")
        assert response.json()["balance"] == 500

    async def test_transfer_insufficient_balance(
        self, client: AsyncClient, wallets
    ):
        response = await client.post(
            "/transfer",
            json={
                "sender_id": "bob",
                "receiver_id": "alice",
                "amount": 500,
                "reference": "ref-2",
            },
        )

        assert response.status_code == 400
        assert "insufficient" in response.json()["error"].lower()

        response = await client.get("/wallet/bob")
        assert response.json()["balance"] == 200

    async def test_transfer_duplicate_reference(
        self, client: AsyncClient, wallets
    ):
        body = {
            "sender_id": "alice",
            "receiver_id": "bob",
            "amount": 100,
            "reference": "ref-3",
        }
        response = await client.post("/transfer", json=body)
        assert response.status_code == 200

        response = await client.post("/transfer", json=body)
        assert response.status_code == 400
        assert "already exists" in response.json()["error"]

        response = await client.get("/wallet/alice")
        assert response.json()["balance"] == 900

    async def test_transfer_same_party(self, client: AsyncClient, wallets):
        response = await client.post(
            "/transfer",
            json={
                "sender_id": "alice",
                "receiver_id": "alice",
                "amount": 50,
                "reference": "ref-5",
            },
        )

        assert response.status_code == 400
        assert response.json()["error"] == "cannot transfer to the same user"

    @pytest.mark.parametrize("amount", [0, -100])
    async def test_transfer_invalid_amount(
        self, client: AsyncClient, wallets, amount
    ):
        response = await client.post(
            "/transfer",
            json={
                "sender_id": "alice",
                "receiver_id": "bob",
                "amount": amount,
                "reference": "ref-bad",
            },
        )

        assert response.status_code == 400
        assert response.json()["error"] == "amount must be greater than zero"

    async def test_transfer_to_missing_wallet(
        self, client: AsyncClient, wallets
    ):
        """NotFound на пути записи отдается как 400."""
        response = await client.post(
            "/transfer",
            json={
                "sender_id": "alice",
                "receiver_id": "nobody",
                "amount": 10,
                "reference": "ref-missing",
            },
        )

        assert response.status_code == 400
        assert "not found" in response.json()["error"]

        response = await client.get("/wallet/alice")
        assert response.json()["balance"] == 1000

    async def test_transfer_invalid_body(self, client: AsyncClient):
        response = await client.post(
            "/transfer", json={"sender_id": "alice", "amount": 10}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "invalid request body"}

    async def test_transfer_malformed_json(self, client: AsyncClient):
        response = await client.post(
            "/transfer",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "invalid request body"}

    async def test_top_up_is_not_idempotent(
        self, client: AsyncClient, wallets
    ):
        """Повторное пополнение с теми же аргументами зачисляет снова."""
        response = await client.post(
            "/topup", json={"user_id": "alice", "amount": 500}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == "alice"
        assert data["amount"] == 500
        assert data["new_balance"] == 1500

        response = await client.post(
            "/topup", json={"user_id": "alice", "amount": 500}
        )
        assert response.status_code == 200
        assert response.json()["new_balance"] == 2000

    async def test_top_up_missing_wallet(self, client: AsyncClient):
        response = await client.post(
            "/topup", json={"user_id": "nobody", "amount": 500}
        )

        assert response.status_code == 400
        assert "not found" in response.json()["error"]

    async def test_top_up_zero_amount(self, client: AsyncClient, wallets):
        response = await client.post(
            "/topup", json={"user_id": "alice", "amount": 0}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "amount must be greater than zero"

    @pytest.mark.parametrize("amount", [2 ** 63, True, 1.5, "100"])
    async def test_top_up_amount_must_be_int64(
        self, client: AsyncClient, wallets, amount
    ):
        """Сумма вне BigInteger или не целое число - ошибка тела запроса."""
        response = await client.post(
            "/topup", json={"user_id": "alice", "amount": amount}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "invalid request body"}

        response = await client.get("/wallet/alice")
        assert response.json()["balance"] == 1000

    @pytest.mark.parametrize("amount", [2 ** 63, True, 1.5])
    async def test_transfer_amount_must_be_int64(
        self, client: AsyncClient, wallets, amount
    ):
        response = await client.post(
            "/transfer",
            json={
                "sender_id": "alice",
                "receiver_id": "bob",
                "amount": amount,
                "reference": "ref-type",
            },
        )

        assert response.status_code == 400
        assert response.json() == {"error": "invalid request body"}

    async def test_top_up_over_balance_limit(
        self, client: AsyncClient, wallets
    ):
        """Зачисление сверх предела отклоняется без изменения баланса."""
        response = await client.post(
            "/topup", json={"user_id": "alice", "amount": 2 ** 63 - 1}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "balance limit exceeded"}

        response = await client.get("/wallet/alice")
        data = response.json()
        assert (data["balance"], data["version"]) == (1000, 0)

    async def test_get_transaction(self, client: AsyncClient, wallets):
        await client.post(
            "/transfer",
            json={
                "sender_id": "alice",
                "receiver_id": "bob",
                "amount": 250,
                "reference": "ref-get",
            },
        )

        response = await client.get("/transaction/ref-get")

        assert response.status_code == 200
        data = response.json()
        assert data["reference"] == "ref-get"
        assert data["sender_id"] == "alice"
        assert data["receiver_id"] == "bob"
        assert data["amount"] == 250
        assert data["status"] == "completed"

    async def test_get_missing_transaction(self, client: AsyncClient):
        response = await client.get("/transaction/missing")

        assert response.status_code == 404
        assert "not found" in response.json()["error"]

    async def test_get_wallet(self, client: AsyncClient, wallets):
        response = await client.get("/wallet/bob")

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == "bob"
        assert data["balance"] == 200
        assert data["version"] == 0
        assert data["wallet_id"]

    async def test_get_missing_wallet(self, client: AsyncClient):
        response = await client.get("/wallet/nobody")

        assert response.status_code == 404
        assert "not found" in response.json()["error"]
