import json
import logging
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from app.errors import (
    AuthenticationError,
    MissingCustomerEmailError,
    PaymentNotSuccessfulError,
    ValidationError,
)
from app.models.checkout import CartSummary, Customer, NormalizedItem, Receipt
from app.services.cart import decode_summary, encode_summary, normalize_items, summarize_cart
from app.services.coercion import coerce_text
from app.services.email import EmailClient
from app.services.paystack import PaystackClient
from app.services.receipts import build_receipt, dispatch_receipt

logger = logging.getLogger(__name__)

SUCCESS_EVENT = "charge.success"
SUCCESS_STATUS = "success"

def to_minor_units(amount: float) -> int:
    cents = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)

def _text(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if isinstance(value, str):
        return value.strip()
    # phone numbers sometimes arrive as JSON numbers
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        return coerce_text(value)
    return ""

def build_metadata(summary: CartSummary, customer: Customer, delivery_method: Optional[str]) -> Dict[str, Any]:
    """Everything needed to rebuild the receipt once the gateway calls back."""
    cart_summary = encode_summary(summary.items)
    return {
        "full_name": customer.full_name,
        "phone": customer.phone,
        "email": customer.email,
        "delivery_method": delivery_method,
        "cart": [item.to_metadata() for item in summary.items],
        "cart_summary": cart_summary,
        "custom_fields": [
            {"display_name": "Full Name", "variable_name": "full_name", "value": customer.full_name},
            {"display_name": "Phone Number", "variable_name": "phone_number", "value": customer.phone},
            {"display_name": "Delivery Method", "variable_name": "delivery_method", "value": delivery_method},
            {"display_name": "Cart Items", "variable_name": "cart_items", "value": cart_summary},
        ],
    }

async def handle_payment_initiation(payload: Any, gateway: PaystackClient) -> Dict[str, Any]:
    """
    Validate a /pay request and open a Paystack transaction for it.

    Returns the gateway's initialize response untouched.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid request body.")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("Cart is empty or invalid.")

    customer = Customer(
        full_name=_text(payload, "fullNameValue"),
        phone=_text(payload, "phoneValue"),
        email=_text(payload, "emailValue"),
    )
    if not customer.email:
        raise ValidationError("Email is required.")
    if not customer.phone:
        raise ValidationError("Phone number is required.")
    if not customer.full_name:
        raise ValidationError("Full name is required.")

    logger.info(f"[Pay] Received {len(items)} items for {customer.email}")
    summary = summarize_cart(items, payload.get("amount"))

    for item in summary.items:
        if item.price < 0:
            raise ValidationError(f"Item {item.line_index} has a negative price.")
    if not math.isfinite(summary.total_amount):
        raise ValidationError("Order total is not a valid amount.")
    if summary.total_amount <= 0:
        raise ValidationError("Order total must be greater than zero.")

    delivery_method = _text(payload, "deliveryMethod") or None
    metadata = build_metadata(summary, customer, delivery_method)
    amount = to_minor_units(summary.total_amount)

    response = await gateway.initialize_transaction(customer.email, amount, metadata)
    logger.info(f"[Pay] Initialized transaction for {customer.email}, amount={amount}")
    return response

def parse_metadata(metadata: Any) -> Dict[str, Any]:
    """Paystack echoes metadata either as an object or as a JSON string."""
    if isinstance(metadata, str):
        try:
            metadata = json.loads(metadata)
        except ValueError:
            logger.warning("[Webhook] Metadata is not valid JSON, ignoring it")
            return {}
    return metadata if isinstance(metadata, dict) else {}

def _first_text(*values: Any) -> Optional[str]:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None

def _custom_field(metadata: Dict[str, Any], variable_name: str) -> Optional[str]:
    fields = metadata.get("custom_fields")
    if not isinstance(fields, list):
        return None
    for field in fields:
        if isinstance(field, dict) and field.get("variable_name") == variable_name:
            value = field.get("value")
            return value if isinstance(value, str) and value else None
    return None

def recover_customer(
    metadata: Dict[str, Any],
    gateway_customer: Any = None,
    overrides: Optional[Customer] = None,
) -> Customer:
    """
    Pick customer details from the request, then metadata, then the
    gateway's own customer record.
    """
    overrides = overrides or Customer()
    gateway_customer = gateway_customer if isinstance(gateway_customer, dict) else {}

    gateway_name = " ".join(
        part.strip() for part in (gateway_customer.get("first_name"), gateway_customer.get("last_name"))
        if isinstance(part, str) and part.strip()
    )

    return Customer(
        full_name=_first_text(
            overrides.full_name,
            metadata.get("full_name"),
            _custom_field(metadata, "full_name"),
            gateway_name,
        ),
        phone=_first_text(
            overrides.phone,
            metadata.get("phone"),
            _custom_field(metadata, "phone_number"),
            gateway_customer.get("phone"),
        ),
        email=_first_text(
            overrides.email,
            metadata.get("email"),
            gateway_customer.get("email"),
        ),
    )

def reconstruct_items(metadata: Dict[str, Any], fallback_items: Any = None) -> List[NormalizedItem]:
    """
    Rebuild the normalized cart from gateway metadata.

    The structured cart is used whenever present; the pipe-delimited summary
    is only decoded when nothing structured is available.
    """
    cart = metadata.get("cart")
    if isinstance(cart, str):
        try:
            cart = json.loads(cart)
        except ValueError:
            cart = None

    if isinstance(cart, list) and cart:
        return normalize_items(cart)

    if isinstance(fallback_items, list) and fallback_items:
        return normalize_items(fallback_items)

    summary = metadata.get("cart_summary") or _custom_field(metadata, "cart_items")
    if summary:
        logger.info("[Webhook] No structured cart in metadata, decoding summary string")
    return decode_summary(summary)

async def handle_verification(payload: Any, gateway: PaystackClient, mailer: EmailClient) -> Dict[str, Any]:
    """
    Client-triggered confirmation: re-verify the reference with Paystack,
    then send the receipt before answering.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid request body.")

    reference = _text(payload, "reference")
    if not reference:
        raise ValidationError("Transaction reference is required.")

    response = await gateway.verify_transaction(reference)
    data = response.get("data") if isinstance(response, dict) else None
    data = data if isinstance(data, dict) else {}

    status = data.get("status")
    if status != SUCCESS_STATUS:
        logger.warning(f"[Verify] Transaction {reference} not successful: status={status}")
        raise PaymentNotSuccessfulError(f"Payment not successful (status: {status}).")

    metadata = parse_metadata(data.get("metadata"))
    customer = recover_customer(
        metadata,
        data.get("customer"),
        overrides=Customer(
            full_name=_text(payload, "fullNameValue") or None,
            phone=_text(payload, "phoneValue") or None,
            email=_text(payload, "emailValue") or None,
        ),
    )
    items = reconstruct_items(metadata, payload.get("items"))
    delivery_method = _first_text(
        payload.get("deliveryMethod"),
        metadata.get("delivery_method"),
        _custom_field(metadata, "delivery_method"),
    )

    receipt_sent = False
    try:
        receipt = build_receipt(customer, items, data.get("amount"), delivery_method, reference)
    except MissingCustomerEmailError as e:
        logger.error(f"[Verify] {e.message} for reference {reference}")
    else:
        results = await dispatch_receipt(mailer, receipt)
        receipt_sent = results.get(receipt.email, False)

    return {"success": True, "data": data, "receiptSent": receipt_sent}

def authenticate_webhook(raw_body: bytes, signature: Optional[str], gateway: PaystackClient) -> Dict[str, Any]:
    """Check the signature over the exact raw bytes, then parse the event."""
    if not gateway.verify_signature(raw_body, signature):
        logger.warning("[Webhook] Rejected event with invalid signature")
        raise AuthenticationError("Invalid signature.")

    try:
        event = json.loads(raw_body)
    except ValueError as e:
        raise ValidationError("Malformed webhook payload.") from e
    if not isinstance(event, dict):
        raise ValidationError("Malformed webhook payload.")
    return event

def receipt_from_event(event: Dict[str, Any]) -> Optional[Receipt]:
    """
    Build the receipt for a charge.success event; None for any other event.

    Raises MissingCustomerEmailError when no address can be recovered.
    """
    if event.get("event") != SUCCESS_EVENT:
        return None

    data = event.get("data")
    if not isinstance(data, dict):
        raise ValidationError("Malformed webhook payload.")

    metadata = parse_metadata(data.get("metadata"))
    customer = recover_customer(metadata, data.get("customer"))
    items = reconstruct_items(metadata)
    delivery_method = _first_text(metadata.get("delivery_method"), _custom_field(metadata, "delivery_method"))
    return build_receipt(customer, items, data.get("amount"), delivery_method, data.get("reference"))
