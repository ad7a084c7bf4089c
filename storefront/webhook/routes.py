# storefront/webhook/routes.py
import structlog
from flask import current_app, request

from ..errors import Unauthenticated
from ..fulfillment.pipeline import process_event
from ..gateway import get_gateway
from ..payments.verifier import verify_event
from ..utils.api import ok
from ..utils.logging import add_context, clear_context
from . import bp

logger = structlog.get_logger(__name__)


@bp.get("/stripe")
def stripe_health():
    return ok("webhook endpoint is running")


@bp.post("/stripe")
def stripe_webhook():
    """Ingest one gateway event.

    200: acknowledged (processed, duplicate or ignored)
    400: signature or payload rejected; the gateway must not retry
    500: transient failure; the gateway retries with backoff
    """
    cfg = current_app.config
    try:
        event = verify_event(
            request.get_data(),
            request.headers.get("Stripe-Signature"),
            cfg.get("STRIPE_WEBHOOK_SECRET"),
            tolerance=cfg.get("STRIPE_WEBHOOK_TOLERANCE", 300),
        )
    except Unauthenticated as e:
        logger.warning("payment_event_rejected", error=e.message)
        raise

    clear_context()
    add_context(event_id=event.event_id, transaction_id=event.transaction_id)
    try:
        result = process_event(event, get_gateway())
    finally:
        clear_context()
    return ok("Webhook processed", result.as_api())
