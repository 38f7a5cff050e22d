# investledger/routes/webhooks.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from investledger.core.config import app_config
from investledger.routes.deps import get_db, get_notifier, get_raw_body
from investledger.schemas.webhook import CryptoDepositWebhook
from investledger.services.status_transitions import confirm_crypto_deposit
from investledger.services.webhook_security import WebhookConfigurationError, verify_signature

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/crypto-deposit")
def crypto_deposit(
    body: bytes = Depends(get_raw_body),
    x_webhook_signature: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    secret = app_config.get_str(db, "crypto_webhook_secret")
    try:
        if not verify_signature(body, x_webhook_signature, secret):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature.")
    except WebhookConfigurationError:
        logger.error("CRITICAL: Webhook secret is not configured securely.")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Webhook configuration error on server.")

    try:
        payload = CryptoDepositWebhook.model_validate_json(body)
    except PydanticValidationError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Webhook payload is missing required fields.")

    transaction = confirm_crypto_deposit(
        db,
        payload.address,
        payload.amount,
        payload.confirmations,
        payload.tx_hash,
        notifier=notifier,
    )

    if transaction is None:
        return {"status": "acknowledged", "message": "Awaiting confirmations or already processed."}
    return {"status": "processed", "transaction_id": transaction.id}
