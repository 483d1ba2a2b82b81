from app.services.cart import encode_summary, normalize_items
from conftest import sign, webhook_body

RAW_CART = [
    {"preset": "Love", "mugColor": "Red", "price": 50, "quantity": 2},
    {"preset": "Item 2", "handleType": {"label": "Gold", "addon": 15}, "price": "R30"},
]


def _event(event="charge.success", **data):
    items = normalize_items(RAW_CART)
    payload = {
        "reference": "ref_abc",
        "amount": 15000,
        "status": "success",
        "customer": {"email": "thandi@example.com", "first_name": "Thandi", "last_name": "M"},
        "metadata": {
            "full_name": "Thandi M",
            "phone": "0821234567",
            "delivery_method": "Courier",
            "cart": [i.to_metadata() for i in items],
            "cart_summary": encode_summary(items),
        },
    }
    payload.update(data)
    return {"event": event, "data": payload}


def _post(client, event, signature=None):
    body = webhook_body(event)
    return client.post(
        "/paystack-webhook",
        content=body,
        headers={"Content-Type": "application/json", "x-paystack-signature": signature or sign(body)},
    )


def test_charge_success_sends_receipt(client, mailer):
    response = _post(client, _event())
    assert response.status_code == 200
    assert response.json() == {"status": "received", "reference": "ref_abc"}

    assert len(mailer.sent) == 1
    sent = mailer.sent[0]
    assert sent["to"] == "thandi@example.com"
    model = sent["model"]
    assert model["amount"] == 150
    assert model["fullName"] == "Thandi M"
    assert model["phone"] == "0821234567"
    assert model["deliveryMethod"] == "Courier"
    assert model["items"] == [
        {"name": "Preset: Love, Mug Color: Red", "quantity": 2, "price": 50},
        {"name": "Handle Type: Gold +R15", "quantity": 1, "price": 30},
    ]


def test_receipt_items_match_what_was_encoded_at_initialization(client, gateway, mailer):
    client.post("/pay", json={
        "items": RAW_CART,
        "phoneValue": "0821234567",
        "emailValue": "thandi@example.com",
        "fullNameValue": "Thandi M",
    })
    metadata = gateway.initialized[0]["metadata"]

    _post(client, _event(metadata=metadata, amount=gateway.initialized[0]["amount"]))
    items = mailer.sent[0]["model"]["items"]
    assert [(i["name"], i["quantity"], i["price"]) for i in items] == [
        (c["description"], c["quantity"], c["price"]) for c in metadata["cart"]
    ]


def test_summary_string_fallback_when_cart_missing(client, mailer):
    event = _event()
    del event["data"]["metadata"]["cart"]
    _post(client, event)
    items = mailer.sent[0]["model"]["items"]
    assert items[1] == {"name": "Handle Type: Gold +R15", "quantity": 1, "price": 30}


def test_metadata_sent_as_json_string(client, mailer):
    import json
    event = _event()
    event["data"]["metadata"] = json.dumps(event["data"]["metadata"])
    assert _post(client, event).status_code == 200
    assert len(mailer.sent[0]["model"]["items"]) == 2


def test_tampered_body_is_rejected_without_email(client, mailer):
    event = _event()
    signature = sign(webhook_body(event))
    event["data"]["amount"] = 1
    response = _post(client, event, signature=signature)
    assert response.status_code == 400
    assert mailer.sent == []


def test_missing_signature_is_rejected(client, mailer):
    response = client.post("/paystack-webhook", content=webhook_body(_event()))
    assert response.status_code == 400
    assert mailer.sent == []


def test_other_events_are_acknowledged_and_ignored(client, mailer):
    response = _post(client, _event(event="charge.failed"))
    assert response.status_code == 200
    assert response.json()["status"] == "ignored"
    assert mailer.sent == []


def test_no_recoverable_email_is_skipped(client, mailer):
    event = _event(customer={})
    response = _post(client, event)
    assert response.status_code == 200
    assert response.json() == {"status": "skipped", "reason": "no_email"}
    assert mailer.sent == []


def test_email_failure_still_acknowledges(client, mailer, caplog):
    mailer.fail = True
    response = _post(client, _event())
    assert response.status_code == 200
    assert "Could not send receipt" in caplog.text


def test_malformed_signed_body_is_rejected(client):
    body = b"[not json"
    response = client.post("/paystack-webhook", content=body, headers={"x-paystack-signature": sign(body)})
    assert response.status_code == 400
