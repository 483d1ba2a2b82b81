import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from app.api.routes import router
from app.errors import RelayError
from app.services.email import EmailClient
from app.services.paystack import PaystackClient
from config import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
    ]
)

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting up application...")
    if not settings.PAYSTACK_SECRET_KEY:
        logger.warning("PAYSTACK_SECRET_KEY is not set; gateway calls and webhooks will fail")
    app.state.gateway = PaystackClient(
        settings.PAYSTACK_SECRET_KEY,
        base_url=settings.PAYSTACK_BASE_URL,
        timeout=settings.HTTP_TIMEOUT,
    )
    app.state.mailer = EmailClient(
        settings.EMAIL_API_TOKEN,
        sender=settings.SENDER_EMAIL,
        base_url=settings.EMAIL_API_URL,
        timeout=settings.HTTP_TIMEOUT,
    )
    yield
    # Shutdown
    logger.info("Shutting down application...")
    await app.state.gateway.close()
    await app.state.mailer.close()

app = FastAPI(lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.ALLOWED_ORIGIN],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(router)

@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError):
    logger.error(f"[{request.url.path}] {exc.__class__.__name__}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.get("/", response_class=PlainTextResponse)
def read_root():
    return "Paystack backend is running"
