import logging
from typing import Any, Dict, List, Optional

from app.errors import EmailDispatchError, MissingCustomerEmailError
from app.models.checkout import Customer, NormalizedItem, Receipt, ReceiptItem
from app.services.coercion import coerce_number
from app.services.email import EmailClient
from config import settings

logger = logging.getLogger(__name__)

def to_major_units(minor: Any) -> float:
    """Gateway amounts are in cents; receipts show rands."""
    amount = coerce_number(minor) / 100
    return int(amount) if float(amount).is_integer() else amount

def build_receipt(
    customer: Customer,
    items: List[NormalizedItem],
    amount_minor: Any,
    delivery_method: Optional[str] = None,
    reference: Optional[str] = None,
) -> Receipt:
    if not customer.email:
        raise MissingCustomerEmailError("No customer email available for receipt")

    return Receipt(
        full_name=customer.full_name or "",
        phone=customer.phone or "",
        email=customer.email,
        delivery_method=delivery_method or "",
        amount=to_major_units(amount_minor),
        reference=reference,
        items=[
            ReceiptItem(name=item.description, quantity=item.quantity, price=item.price)
            for item in items
        ],
    )

async def dispatch_receipt(mailer: EmailClient, receipt: Receipt) -> Dict[str, bool]:
    """
    Send the customer receipt and, when configured, the internal copy.

    Never raises: a failed send is logged and reported as False.
    """
    model = receipt.to_template_model()
    recipients = [(receipt.email, settings.RECEIPT_TEMPLATE)]
    if settings.OPS_EMAIL:
        recipients.append((settings.OPS_EMAIL, settings.OPS_TEMPLATE))

    results: Dict[str, bool] = {}
    for to, template in recipients:
        try:
            await mailer.send_template(to, template, model)
            results[to] = True
        except EmailDispatchError as e:
            logger.error(f"[Receipt] Could not send receipt {receipt.reference or ''} to {to}: {e.message}")
            results[to] = False
        except Exception as e:
            logger.exception(f"[Receipt] Unexpected error sending receipt to {to}: {str(e)}")
            results[to] = False

    return results
