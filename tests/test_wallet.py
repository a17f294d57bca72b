"""
Tests for the wallet ledger (deposit, send, lazy wallet, queries).

These tests verify:
  - The wallet is opened on first access, exactly once
  - Deposits create a PENDING DEPOSIT and credit the balance immediately
  - Sends succeed iff the balance covers them and debit it immediately
  - A refused send leaves the balance and the history untouched
  - Non-positive and non-integer amounts are rejected
  - A storage failure mid-operation leaves nothing applied
  - Owners can cancel their own pending transactions
  - Suspended wallets refuse deposits and sends
"""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import InvalidAmountError, StorageFailureError
from app.models.wallet import Wallet
from app.models.wallet_transaction import WalletTransaction
from app.services import account_service, wallet_service
from conftest import account_payload


async def _balance(client) -> int:
    response = await client.get("/wallet")
    assert response.status_code == 200
    return response.json()["balance_cents"]


async def _fund(client, amount_cents: int) -> dict:
    response = await client.post("/wallet/deposit", json={"amount_cents": amount_cents})
    assert response.status_code == 201, response.text
    return response.json()["transaction"]


async def _link_account(client) -> str:
    response = await client.post("/accounts", json=account_payload())
    assert response.status_code == 201, response.text
    return response.json()["id"]


# ---------------------------------------------------------------------------
# Wallet lifecycle
# ---------------------------------------------------------------------------

class TestGetWallet:
    """Tests for GET /wallet."""

    async def test_first_access_opens_empty_wallet(self, authenticated_client):
        response = await authenticated_client.get("/wallet")
        assert response.status_code == 200
        data = response.json()
        assert data["balance_cents"] == 0
        assert data["currency"] == "USD"
        assert data["status"] == "ACTIVE"

    async def test_wallet_is_created_once(self, authenticated_client):
        first = await authenticated_client.get("/wallet")
        second = await authenticated_client.get("/wallet")
        assert first.json()["id"] == second.json()["id"]

    async def test_get_wallet_is_idempotent_in_one_session(self, db_session, member):
        first = await wallet_service.get_wallet(db_session, member.id)
        second = await wallet_service.get_wallet(db_session, member.id)
        await db_session.commit()

        assert first.id == second.id
        count = await db_session.execute(
            select(func.count(Wallet.id)).where(Wallet.user_id == member.id)
        )
        assert count.scalar_one() == 1


# ---------------------------------------------------------------------------
# Deposits
# ---------------------------------------------------------------------------

class TestDeposit:
    """Tests for POST /wallet/deposit."""

    async def test_deposit_into_empty_wallet(self, authenticated_client):
        """0 -> deposit 50.00 -> PENDING DEPOSIT, balance 50.00."""
        txn = await _fund(authenticated_client, 5000)
        assert txn["type"] == "DEPOSIT"
        assert txn["status"] == "PENDING"
        assert txn["amount_cents"] == 5000
        assert txn["description"] == "Wallet deposit"
        assert await _balance(authenticated_client) == 5000

    async def test_deposits_accumulate(self, authenticated_client):
        await _fund(authenticated_client, 1050)
        await _fund(authenticated_client, 2025)
        assert await _balance(authenticated_client) == 3075

    async def test_deposit_visible_with_balance(self, authenticated_client):
        txn = await _fund(authenticated_client, 700)

        listed = await authenticated_client.get("/wallet/transactions")
        assert [t["id"] for t in listed.json()] == [txn["id"]]
        assert await _balance(authenticated_client) == 700

    @pytest.mark.parametrize("amount", [0, -100])
    async def test_non_positive_amount_rejected(self, authenticated_client, amount):
        response = await authenticated_client.post(
            "/wallet/deposit", json={"amount_cents": amount}
        )
        assert response.status_code == 422
        assert await _balance(authenticated_client) == 0

    @pytest.mark.parametrize("amount", [0, -1, True, 1.5, "100"])
    async def test_service_rejects_invalid_amount(self, db_session, member, amount):
        with pytest.raises(InvalidAmountError):
            await wallet_service.deposit(db_session, member.id, amount)


# ---------------------------------------------------------------------------
# Sends
# ---------------------------------------------------------------------------

class TestSend:
    """Tests for POST /wallet/send."""

    async def test_send_within_balance(self, authenticated_client):
        account_id = await _link_account(authenticated_client)
        await _fund(authenticated_client, 10000)

        response = await authenticated_client.post(
            "/wallet/send",
            json={"amount_cents": 6000, "account_id": account_id},
        )
        assert response.status_code == 201
        txn = response.json()["transaction"]
        assert txn["type"] == "WITHDRAWAL"
        assert txn["status"] == "PENDING"
        assert txn["account_id"] == account_id
        assert await _balance(authenticated_client) == 4000

    async def test_send_entire_balance(self, authenticated_client):
        account_id = await _link_account(authenticated_client)
        await _fund(authenticated_client, 2500)

        response = await authenticated_client.post(
            "/wallet/send",
            json={"amount_cents": 2500, "account_id": account_id},
        )
        assert response.status_code == 201
        assert await _balance(authenticated_client) == 0

    async def test_insufficient_balance_changes_nothing(self, authenticated_client):
        account_id = await _link_account(authenticated_client)
        await _fund(authenticated_client, 3000)

        response = await authenticated_client.post(
            "/wallet/send",
            json={"amount_cents": 3001, "account_id": account_id},
        )
        assert response.status_code == 422
        data = response.json()
        assert data["error_type"] == "insufficient_balance"
        assert data["requested_cents"] == 3001
        assert data["available_cents"] == 3000

        assert await _balance(authenticated_client) == 3000
        withdrawals = await authenticated_client.get(
            "/wallet/transactions", params={"type": "WITHDRAWAL"}
        )
        assert withdrawals.json() == []

    async def test_send_without_wallet(self, authenticated_client):
        account_id = await _link_account(authenticated_client)

        response = await authenticated_client.post(
            "/wallet/send",
            json={"amount_cents": 100, "account_id": account_id},
        )
        assert response.status_code == 404
        assert response.json()["error_type"] == "wallet_not_found"

    async def test_send_to_other_users_account(
        self, authenticated_client, second_authenticated_client
    ):
        other_account = await _link_account(second_authenticated_client)
        await _fund(authenticated_client, 5000)

        response = await authenticated_client.post(
            "/wallet/send",
            json={"amount_cents": 100, "account_id": other_account},
        )
        assert response.status_code == 404
        assert response.json()["error_type"] == "account_not_found"
        assert await _balance(authenticated_client) == 5000


# ---------------------------------------------------------------------------
# Atomicity
# ---------------------------------------------------------------------------

class TestStorageFailure:
    """A failed write inside deposit/send leaves neither record nor balance change."""

    async def test_failed_deposit_applies_nothing(self, db_session, member, monkeypatch):
        user_id = member.id
        await wallet_service.deposit(db_session, member.id, 1000)
        await db_session.commit()

        async def failing_flush(self, objects=None):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(AsyncSession, "flush", failing_flush)
        with pytest.raises(StorageFailureError):
            await wallet_service.deposit(db_session, member.id, 500)
        await db_session.rollback()
        monkeypatch.undo()

        balance = await db_session.execute(
            select(Wallet.balance_cents).where(Wallet.user_id == user_id)
        )
        assert balance.scalar_one() == 1000
        count = await db_session.execute(select(func.count(WalletTransaction.id)))
        assert count.scalar_one() == 1

    async def test_failed_send_restores_debit(self, db_session, member, monkeypatch):
        user_id = member.id
        account = await account_service.create_account(
            db_session, member.id, "Carol User", "11112222", "HDFC0001234"
        )
        await wallet_service.deposit(db_session, member.id, 1000)
        await db_session.commit()

        async def failing_flush(self, objects=None):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(AsyncSession, "flush", failing_flush)
        with pytest.raises(StorageFailureError):
            await wallet_service.send(db_session, member.id, 400, account.id)
        await db_session.rollback()
        monkeypatch.undo()

        balance = await db_session.execute(
            select(Wallet.balance_cents).where(Wallet.user_id == user_id)
        )
        assert balance.scalar_one() == 1000
        count = await db_session.execute(select(func.count(WalletTransaction.id)))
        assert count.scalar_one() == 1


# ---------------------------------------------------------------------------
# Owner cancellation and queries
# ---------------------------------------------------------------------------

class TestOwnerCancel:
    """Tests for POST /wallet/transactions/{id}/cancel."""

    async def test_cancel_send_restores_balance(self, authenticated_client):
        """100.00 -> send 60.00 -> 40.00 PENDING -> CANCELLED -> 100.00."""
        account_id = await _link_account(authenticated_client)
        await _fund(authenticated_client, 10000)
        send = await authenticated_client.post(
            "/wallet/send",
            json={"amount_cents": 6000, "account_id": account_id},
        )
        txn_id = send.json()["transaction"]["id"]
        assert await _balance(authenticated_client) == 4000

        response = await authenticated_client.post(f"/wallet/transactions/{txn_id}/cancel")
        assert response.status_code == 200
        assert response.json()["transaction"]["status"] == "CANCELLED"
        assert await _balance(authenticated_client) == 10000

    async def test_cancel_twice_conflicts(self, authenticated_client):
        txn = await _fund(authenticated_client, 1000)

        first = await authenticated_client.post(f"/wallet/transactions/{txn['id']}/cancel")
        assert first.status_code == 200
        assert await _balance(authenticated_client) == 0

        second = await authenticated_client.post(f"/wallet/transactions/{txn['id']}/cancel")
        assert second.status_code == 409
        assert second.json()["error_type"] == "invalid_transition"
        assert await _balance(authenticated_client) == 0

    async def test_cannot_cancel_other_users_transaction(
        self, authenticated_client, second_authenticated_client
    ):
        txn = await _fund(authenticated_client, 1000)

        response = await second_authenticated_client.post(
            f"/wallet/transactions/{txn['id']}/cancel"
        )
        assert response.status_code == 404
        assert await _balance(authenticated_client) == 1000


class TestQueries:
    """Tests for listing, detail and dashboard."""

    async def test_filter_by_status(self, authenticated_client):
        keep = await _fund(authenticated_client, 100)
        cancel = await _fund(authenticated_client, 200)
        await authenticated_client.post(f"/wallet/transactions/{cancel['id']}/cancel")

        pending = await authenticated_client.get(
            "/wallet/transactions", params={"status": "PENDING"}
        )
        assert [t["id"] for t in pending.json()] == [keep["id"]]

    async def test_transaction_detail_embeds_account(self, authenticated_client):
        account_id = await _link_account(authenticated_client)
        await _fund(authenticated_client, 1000)
        send = await authenticated_client.post(
            "/wallet/send",
            json={"amount_cents": 300, "account_id": account_id},
        )
        txn_id = send.json()["transaction"]["id"]

        response = await authenticated_client.get(f"/wallet/transactions/{txn_id}")
        assert response.status_code == 200
        data = response.json()
        assert data["account"]["account_number_last_four"] == "4821"
        assert data["user"]["username"] == "alice"

    async def test_dashboard(self, authenticated_client):
        await _fund(authenticated_client, 1000)
        await _fund(authenticated_client, 500)

        response = await authenticated_client.get("/wallet/dashboard")
        assert response.status_code == 200
        data = response.json()
        assert data["wallet"]["balance_cents"] == 1500
        assert len(data["recent_transactions"]) == 2
        assert "last_updated" in data


class TestSuspendedWallet:
    """Only ACTIVE wallets accept deposits and sends."""

    async def test_suspended_wallet_refuses_deposit(self, authenticated_client, admin_client):
        await _fund(authenticated_client, 1000)
        profile = await authenticated_client.get("/auth/profile")
        user_id = profile.json()["id"]

        response = await admin_client.patch(
            f"/admin/wallets/{user_id}/status", json={"status": "SUSPENDED"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "SUSPENDED"

        refused = await authenticated_client.post(
            "/wallet/deposit", json={"amount_cents": 100}
        )
        assert refused.status_code == 409
        assert refused.json()["error_type"] == "wallet_inactive"
        assert await _balance(authenticated_client) == 1000

        await admin_client.patch(
            f"/admin/wallets/{user_id}/status", json={"status": "ACTIVE"}
        )
        resumed = await authenticated_client.post(
            "/wallet/deposit", json={"amount_cents": 100}
        )
        assert resumed.status_code == 201
