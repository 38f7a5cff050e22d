# tests/test_status_transitions.py
from datetime import timedelta
from decimal import Decimal

import pytest

from investledger.core.errors import (
    AlreadyProcessed,
    InvalidTransition,
    NotCancellable,
    TransactionNotFound,
    ValidationError,
)
from investledger.models import AuditLog, TransactionStatus
from investledger.services.audit import Actor
from investledger.services.ledger import expected_balance
from investledger.services.status_transitions import (
    cancel_pending_transaction,
    confirm_crypto_deposit,
    transition_transaction_status,
)
from investledger.services.transactions import create_deposit_request

ADMIN = Actor.admin("admin-1")


@pytest.fixture
def account(make_user):
    return make_user(balance="0")


@pytest.fixture
def deposit(db, account, config):
    return create_deposit_request(db, account.id, Decimal("1000"), "bank_transfer", config=config)


class TestDepositCompletion:
    def test_completing_a_deposit_credits_once(self, db, account, deposit, config):
        transition_transaction_status(db, deposit.id, "completed", ADMIN, config=config)

        db.refresh(account)
        assert account.account_balance == Decimal("1000.00")
        assert expected_balance(db, account.id) == account.account_balance

    def test_redelivery_is_rejected_without_side_effects(self, db, account, deposit, config):
        transition_transaction_status(db, deposit.id, TransactionStatus.COMPLETED, ADMIN, config=config)

        with pytest.raises(AlreadyProcessed):
            transition_transaction_status(db, deposit.id, TransactionStatus.COMPLETED, ADMIN, config=config)

        db.refresh(account)
        assert account.account_balance == Decimal("1000.00")
        updates = db.query(AuditLog).filter(AuditLog.action == "transaction_status_update").count()
        assert updates == 1

    def test_failed_deposit_credits_nothing(self, db, account, deposit, config):
        transition_transaction_status(db, deposit.id, "failed", ADMIN, notes="bank rejected", config=config)

        db.refresh(account)
        db.refresh(deposit)
        assert account.account_balance == Decimal("0.00")
        assert deposit.status == TransactionStatus.FAILED
        assert deposit.notes == "bank rejected"

    def test_terminal_states_cannot_change(self, db, deposit, config):
        transition_transaction_status(db, deposit.id, "completed", ADMIN, config=config)

        with pytest.raises(InvalidTransition):
            transition_transaction_status(db, deposit.id, "failed", ADMIN, config=config)

    def test_back_to_pending_is_invalid(self, db, deposit, config):
        with pytest.raises(InvalidTransition):
            transition_transaction_status(db, deposit.id, "pending", ADMIN, config=config)

    def test_unknown_status(self, db, deposit, config):
        with pytest.raises(ValidationError):
            transition_transaction_status(db, deposit.id, "approved", ADMIN, config=config)

    def test_unknown_transaction(self, db, config):
        with pytest.raises(TransactionNotFound):
            transition_transaction_status(db, "missing", "completed", ADMIN, config=config)

    def test_audit_records_actor_and_statuses(self, db, deposit, config):
        transition_transaction_status(db, deposit.id, "completed", ADMIN, tx_hash="0xabc", config=config)

        entry = db.query(AuditLog).filter(
            AuditLog.action == "transaction_status_update",
            AuditLog.entity_id == deposit.id,
        ).one()
        assert entry.actor_type == "admin"
        assert entry.actor_id == "admin-1"
        assert entry.old_values == {"status": "pending"}
        assert entry.new_values["status"] == "completed"
        assert entry.new_values["transaction_hash"] == "0xabc"

    def test_confirmation_notification(self, db, account, deposit, config, notifier, sender):
        transition_transaction_status(db, deposit.id, "completed", ADMIN, notifier=notifier, config=config)

        assert notifier.process_pending() == 1
        assert sender.sent[0][1] == "Deposit confirmed"


class TestUserCancellation:
    def test_cancel_inside_window(self, db, account, deposit, config):
        cancelled = cancel_pending_transaction(
            db, deposit.id, account.id, now=deposit.created_at + timedelta(minutes=30), config=config,
        )
        assert cancelled.status == TransactionStatus.CANCELLED

    def test_cancel_after_window(self, db, account, deposit, config):
        with pytest.raises(NotCancellable):
            cancel_pending_transaction(
                db, deposit.id, account.id, now=deposit.created_at + timedelta(hours=2), config=config,
            )

    def test_cancel_completed_transaction(self, db, account, deposit, config):
        transition_transaction_status(db, deposit.id, "completed", ADMIN, config=config)

        with pytest.raises(NotCancellable):
            cancel_pending_transaction(db, deposit.id, account.id, now=deposit.created_at, config=config)

    def test_cannot_cancel_someone_elses(self, db, make_user, deposit, config):
        stranger = make_user(balance="0")
        with pytest.raises(TransactionNotFound):
            cancel_pending_transaction(db, deposit.id, stranger.id, now=deposit.created_at, config=config)


class TestCryptoConfirmation:
    @pytest.fixture
    def crypto_deposit(self, db, account, config):
        return create_deposit_request(db, account.id, Decimal("500"), "bitcoin", config=config)

    def test_deposit_address_is_generated(self, crypto_deposit):
        assert crypto_deposit.wallet_address.startswith("dep_")
        assert len(crypto_deposit.wallet_address) == 44

    def test_waits_for_confirmations(self, db, account, crypto_deposit, config):
        result = confirm_crypto_deposit(
            db, crypto_deposit.wallet_address, Decimal("500"), 2, "0xhash", config=config,
        )
        assert result is None
        db.refresh(account)
        assert account.account_balance == Decimal("0.00")

    def test_confirms_and_credits(self, db, account, crypto_deposit, config):
        result = confirm_crypto_deposit(
            db, crypto_deposit.wallet_address, Decimal("500"), 3, "0xhash", config=config,
        )
        assert result.id == crypto_deposit.id
        assert result.status == TransactionStatus.COMPLETED
        assert result.transaction_hash == "0xhash"
        db.refresh(account)
        assert account.account_balance == Decimal("500.00")

    def test_replay_is_a_no_op(self, db, account, crypto_deposit, config):
        confirm_crypto_deposit(db, crypto_deposit.wallet_address, Decimal("500"), 3, "0xhash", config=config)
        again = confirm_crypto_deposit(db, crypto_deposit.wallet_address, Decimal("500"), 6, "0xhash", config=config)

        assert again is None
        db.refresh(account)
        assert account.account_balance == Decimal("500.00")

    def test_received_amount_wins(self, db, account, crypto_deposit, config):
        result = confirm_crypto_deposit(
            db, crypto_deposit.wallet_address, Decimal("480"), 3, "0xhash", config=config,
        )
        assert result.amount == Decimal("480.00")
        assert "received 480.00" in result.notes
        db.refresh(account)
        assert account.account_balance == Decimal("480.00")
        assert expected_balance(db, account.id) == Decimal("480.00")
