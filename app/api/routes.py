from fastapi import APIRouter, BackgroundTasks, Depends, Request
from app.errors import MissingCustomerEmailError, ValidationError
from app.services.email import EmailClient
from app.services.handlers import (
    authenticate_webhook,
    handle_payment_initiation,
    handle_verification,
    receipt_from_event,
)
from app.services.paystack import PaystackClient
from app.services.receipts import dispatch_receipt
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-paystack-signature"

def get_gateway(request: Request) -> PaystackClient:
    return request.app.state.gateway

def get_mailer(request: Request) -> EmailClient:
    return request.app.state.mailer

async def _json_body(request: Request):
    try:
        return await request.json()
    except ValueError as e:
        raise ValidationError("Invalid request body.") from e

@router.post("/pay")
async def pay(request: Request, gateway: PaystackClient = Depends(get_gateway)):
    payload = await _json_body(request)
    return await handle_payment_initiation(payload, gateway)

@router.post("/paystack/verify")
async def verify_payment(
    request: Request,
    gateway: PaystackClient = Depends(get_gateway),
    mailer: EmailClient = Depends(get_mailer),
):
    payload = await _json_body(request)
    return await handle_verification(payload, gateway, mailer)

@router.post("/paystack-webhook")
async def paystack_webhook(
    request: Request,
    background_task: BackgroundTasks,
    gateway: PaystackClient = Depends(get_gateway),
    mailer: EmailClient = Depends(get_mailer),
):
    raw_body = await request.body()
    event = authenticate_webhook(raw_body, request.headers.get(SIGNATURE_HEADER), gateway)
    event_type = event.get("event")
    logger.info(f"[Webhook] Received event {event_type}")

    try:
        receipt = receipt_from_event(event)
    except MissingCustomerEmailError as e:
        logger.error(f"[Webhook] {e.message}, dropping event {event_type}")
        return {"status": "skipped", "reason": "no_email"}

    if receipt is None:
        return {"status": "ignored", "event": event_type}

    # Acknowledge now, send after the response so provider latency cannot trigger gateway retries
    background_task.add_task(dispatch_receipt, mailer, receipt)
    return {"status": "received", "reference": receipt.reference}
