from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PAYSTACK_SECRET_KEY: str = ""
    PAYSTACK_BASE_URL: str = "https://api.paystack.co"

    EMAIL_API_TOKEN: str = ""
    EMAIL_API_URL: str = "https://api.postmarkapp.com"
    SENDER_EMAIL: str = ""
    RECEIPT_TEMPLATE: str = "order-receipt"
    OPS_EMAIL: str = ""  # internal copy is skipped when empty
    OPS_TEMPLATE: str = "order-receipt-internal"

    ALLOWED_ORIGIN: str = "https://siwakhelewholdings.co.za"
    HTTP_TIMEOUT: float = 30.0
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()
