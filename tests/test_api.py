# tests/test_api.py
import inspect
import json
from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from investledger.core.config import app_config
from investledger.main import create_app
from investledger.models import Investment
from investledger.routes import webhooks
from investledger.routes.deps import get_raw_body
from investledger.services.webhook_security import sign_payload

ADMIN_HEADERS = {"X-Admin-Id": "admin-1"}
WEBHOOK_SECRET = "whsec-live-test"


@pytest.fixture
def client(engine, session_factory, sender):
    app = create_app(session_factory=session_factory, bind=engine, scheduler_enabled=False, sender=sender)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def headers(user):
    return {"X-User-Id": user.id}


def post_webhook(client, payload, secret=WEBHOOK_SECRET, signature=None):
    body = json.dumps(payload).encode()
    return client.post(
        "/api/v1/webhooks/crypto-deposit",
        content=body,
        headers={
            "Content-Type": "application/json",
            "X-Webhook-Signature": signature or sign_payload(body, secret),
        },
    )


class TestBasics:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_routes_use_the_app_session_factory(self, client, session_factory, user, headers):
        assert client.app.state.session_factory is session_factory
        # The user only exists in the test database
        assert client.get("/api/v1/account", headers=headers).status_code == 200

    def test_identity_required(self, client):
        assert client.get("/api/v1/account").status_code == 401
        assert client.get("/api/v1/account", headers={"X-User-Id": "nobody"}).status_code == 401

    def test_account(self, client, user, headers):
        response = client.get("/api/v1/account", headers=headers)
        assert response.status_code == 200
        assert Decimal(response.json()["account_balance"]) == Decimal("1000")

    def test_packages(self, client, package):
        response = client.get("/api/v1/packages")
        assert response.status_code == 200
        assert [p["name"] for p in response.json()] == ["Growth 30"]


class TestInvestmentRoutes:
    def test_create_and_list(self, client, package, headers):
        response = client.post(
            "/api/v1/investments", json={"package_id": package.id, "amount": "500"}, headers=headers,
        )
        assert response.status_code == 201
        assert Decimal(response.json()["expected_return"]) == Decimal("50")

        listing = client.get("/api/v1/investments", headers=headers).json()
        assert listing["pagination"]["total"] == 1

    def test_amount_outside_bounds_is_a_400(self, client, package, headers):
        response = client.post(
            "/api/v1/investments", json={"package_id": package.id, "amount": "2000"}, headers=headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_amount"

    def test_unknown_package_is_a_404(self, client, headers):
        response = client.post(
            "/api/v1/investments", json={"package_id": "missing", "amount": "500"}, headers=headers,
        )
        assert response.status_code == 404
        assert response.json()["error"] == "package_not_found"

    def test_cancel_outside_window(self, client, db, package, headers):
        created = client.post(
            "/api/v1/investments", json={"package_id": package.id, "amount": "500"}, headers=headers,
        ).json()
        investment = db.query(Investment).filter(Investment.id == created["id"]).one()
        investment.created_at = investment.created_at - timedelta(hours=25)
        db.commit()

        response = client.post(f"/api/v1/investments/{created['id']}/cancel", headers=headers)
        assert response.status_code == 400
        assert response.json()["error"] == "not_cancellable"


class TestTransactionRoutes:
    def test_withdrawal_and_admin_failure(self, client, user, headers):
        response = client.post(
            "/api/v1/transactions/withdrawal",
            json={"amount": "100", "payment_method": "bitcoin", "wallet_address": "bc1qexamplewalletaddress"},
            headers=headers,
        )
        assert response.status_code == 201
        withdrawal = response.json()
        assert Decimal(withdrawal["fees"]) == Decimal("0.50")

        account = client.get("/api/v1/account", headers=headers).json()
        assert Decimal(account["account_balance"]) == Decimal("899.50")

        response = client.put(
            f"/api/v1/admin/transactions/{withdrawal['id']}/status",
            json={"status": "failed", "notes": "chain congestion"},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 200
        account = client.get("/api/v1/account", headers=headers).json()
        assert Decimal(account["account_balance"]) == Decimal("1000.00")

    def test_duplicate_status_update_is_a_409(self, client, headers):
        deposit = client.post(
            "/api/v1/transactions/deposit",
            json={"amount": "250", "payment_method": "bank_transfer"},
            headers=headers,
        ).json()
        url = f"/api/v1/admin/transactions/{deposit['id']}/status"

        assert client.put(url, json={"status": "completed"}, headers=ADMIN_HEADERS).status_code == 200
        response = client.put(url, json={"status": "completed"}, headers=ADMIN_HEADERS)
        assert response.status_code == 409
        assert response.json()["error"] == "already_processed"

        account = client.get("/api/v1/account", headers=headers).json()
        assert Decimal(account["account_balance"]) == Decimal("1250.00")

    def test_admin_identity_required(self, client):
        response = client.put("/api/v1/admin/transactions/x/status", json={"status": "completed"})
        assert response.status_code == 401

    def test_user_cancels_pending_deposit(self, client, headers):
        deposit = client.post(
            "/api/v1/transactions/deposit",
            json={"amount": "250", "payment_method": "bank_transfer"},
            headers=headers,
        ).json()

        response = client.delete(f"/api/v1/transactions/{deposit['id']}", headers=headers)
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    def test_insufficient_balance(self, client, headers):
        response = client.post(
            "/api/v1/transactions/withdrawal",
            json={"amount": "5000", "payment_method": "bank_transfer", "bank_details": "IBAN DE00 1234"},
            headers=headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "insufficient_balance"


class TestAdminRoutes:
    def test_manual_maturity_run(self, client):
        response = client.post("/api/v1/admin/maturity/run", headers=ADMIN_HEADERS)
        assert response.status_code == 200
        assert response.json()["processed_count"] == 0
        assert response.json()["skipped"] is False

    def test_setting_update_is_audited(self, client):
        response = client.put(
            "/api/v1/admin/settings/withdrawal_fee_percentage", json={"value": "1.0"}, headers=ADMIN_HEADERS,
        )
        assert response.status_code == 200

        logs = client.get(
            "/api/v1/admin/audit-logs", params={"action": "setting_update"}, headers=ADMIN_HEADERS,
        ).json()
        assert logs[0]["entity_id"] == "withdrawal_fee_percentage"
        assert logs[0]["new_values"]["value"] == "1.0"


class TestCryptoWebhook:
    @pytest.fixture
    def secret(self, db):
        app_config.set(db, "crypto_webhook_secret", WEBHOOK_SECRET)
        db.commit()

    @pytest.fixture
    def crypto_deposit(self, client, headers):
        response = client.post(
            "/api/v1/transactions/deposit",
            json={"amount": "500", "payment_method": "bitcoin"},
            headers=headers,
        )
        assert response.status_code == 201
        return response.json()

    def test_confirmed_deposit_is_credited_once(self, client, secret, crypto_deposit, headers):
        payload = {
            "address": crypto_deposit["wallet_address"],
            "amount": "500",
            "confirmations": 3,
            "tx_hash": "0xfeed",
        }

        first = post_webhook(client, payload)
        assert first.status_code == 200
        assert first.json()["status"] == "processed"

        replay = post_webhook(client, payload)
        assert replay.status_code == 200
        assert replay.json()["status"] == "acknowledged"

        account = client.get("/api/v1/account", headers=headers).json()
        assert Decimal(account["account_balance"]) == Decimal("1500.00")

    def test_handler_runs_in_the_threadpool(self):
        # Only the body read is async; the ledger work must stay off the event loop
        assert not inspect.iscoroutinefunction(webhooks.crypto_deposit)
        assert inspect.iscoroutinefunction(get_raw_body)

    def test_numeric_looking_secret_still_verifies(self, client, db, crypto_deposit, headers):
        app_config.set(db, "crypto_webhook_secret", "4815162342")
        db.commit()
        payload = {
            "address": crypto_deposit["wallet_address"],
            "amount": "500",
            "confirmations": 3,
            "tx_hash": "0xdigits",
        }

        response = post_webhook(client, payload, secret="4815162342")

        assert response.status_code == 200
        assert response.json()["status"] == "processed"
        account = client.get("/api/v1/account", headers=headers).json()
        assert Decimal(account["account_balance"]) == Decimal("1500.00")

    def test_bad_signature_is_rejected(self, client, secret, crypto_deposit):
        payload = {"address": crypto_deposit["wallet_address"], "amount": "500", "confirmations": 3, "tx_hash": "0x1"}
        response = post_webhook(client, payload, secret="wrong-secret")
        assert response.status_code == 401

    def test_unconfigured_secret_is_a_server_error(self, client, crypto_deposit):
        payload = {"address": crypto_deposit["wallet_address"], "amount": "500", "confirmations": 3, "tx_hash": "0x1"}
        response = post_webhook(client, payload, secret="anything")
        assert response.status_code == 500

    def test_malformed_payload(self, client, secret):
        response = post_webhook(client, {"address": "dep_1"})
        assert response.status_code == 400


class TestPackageAdmin:
    def test_create_and_deactivate(self, client):
        response = client.post(
            "/api/v1/admin/packages",
            json={
                "name": "Starter",
                "min_amount": "50",
                "max_amount": "500",
                "return_rate": "5",
                "duration_days": 7,
            },
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 201
        package_id = response.json()["id"]
        assert [p["id"] for p in client.get("/api/v1/packages").json()] == [package_id]

        response = client.put(
            f"/api/v1/admin/packages/{package_id}/active", params={"is_active": "false"}, headers=ADMIN_HEADERS,
        )
        assert response.status_code == 200
        assert client.get("/api/v1/packages").json() == []

    def test_inverted_bounds_are_rejected(self, client):
        response = client.post(
            "/api/v1/admin/packages",
            json={"name": "Broken", "min_amount": "500", "max_amount": "50", "return_rate": "5", "duration_days": 7},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 422


class TestClosedAccounts:
    def test_closed_account_is_refused(self, client, db, user, headers):
        user.account_status = "closed"
        db.commit()

        response = client.post(
            "/api/v1/transactions/deposit",
            json={"amount": "250", "payment_method": "bank_transfer"},
            headers=headers,
        )
        assert response.status_code == 403
