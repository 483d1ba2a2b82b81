import hashlib
import hmac
import json
import pytest
from typing import Any, Dict, Generator, List, Optional
from fastapi.testclient import TestClient

from app.api.routes import get_gateway, get_mailer
from app.errors import EmailDispatchError, GatewayError
from app.main import app as fastapi_app
from app.services.paystack import PaystackClient

TEST_SECRET = "sk_test_secret"

# Mark tests by folder
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "/tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


class FakeGateway(PaystackClient):
    """Real signature checking, canned transaction calls."""

    def __init__(self):
        super().__init__(TEST_SECRET)
        self.initialized: List[Dict[str, Any]] = []
        self.verified: List[str] = []
        self.initialize_response: Dict[str, Any] = {
            "status": True,
            "message": "Authorization URL created",
            "data": {"authorization_url": "https://checkout.paystack.com/abc", "reference": "ref_123"},
        }
        self.verify_response: Dict[str, Any] = {"status": True, "data": {"status": "success"}}
        self.error: Optional[GatewayError] = None

    async def initialize_transaction(self, email, amount, metadata):
        if self.error:
            raise self.error
        self.initialized.append({"email": email, "amount": amount, "metadata": metadata})
        return self.initialize_response

    async def verify_transaction(self, reference):
        if self.error:
            raise self.error
        self.verified.append(reference)
        return self.verify_response


class FakeMailer:
    def __init__(self):
        self.sent: List[Dict[str, Any]] = []
        self.fail = False

    async def send_template(self, to, template, model):
        if self.fail:
            raise EmailDispatchError("provider down")
        self.sent.append({"to": to, "template": template, "model": model})
        return {"ErrorCode": 0}

    async def close(self):
        pass


def sign(body: bytes, secret: str = TEST_SECRET) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha512).hexdigest()


def webhook_body(event: Dict[str, Any]) -> bytes:
    return json.dumps(event).encode("utf-8")


@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()

@pytest.fixture()
def mailer() -> FakeMailer:
    return FakeMailer()

@pytest.fixture()
def client(app, gateway, mailer) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_mailer] = lambda: mailer
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
