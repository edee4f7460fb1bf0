import asyncio
import contextlib
import logfire

from dotenv import load_dotenv

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from contextlib import asynccontextmanager

from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie

from middleware.error_handling import register_exception_handlers

from models.users import User
from models.security import LoginAttempt, Permissions, Session

from routers import auth

from services.auth import AuthService, get_auth_service
from utils.config import AuthSettings
from utils.logger import instrument_libraries


# Load environment variables first
load_dotenv()

settings = AuthSettings.from_env()

# Configure logfire BEFORE creating FastAPI app; nothing is sent without a token
logfire.configure(token=settings.logfire_write_token, send_to_logfire="if-token-present")

DOCUMENT_MODELS = [User, Permissions, Session, LoginAttempt]


async def run_expiry_sweep(auth_service: AuthService, interval: int) -> None:
    """Periodically delete expired sessions and stale login attempts."""
    try:
        while True:
            await asyncio.sleep(interval)
            try:
                await auth_service.purge_expired()
            except Exception as e:
                logfire.error(f"Expiry sweep failed: {e!r}")
    except asyncio.CancelledError:
        logfire.info("Expiry sweep stopped")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logfire.info("Starting dashboard auth service...")

    # Fails fast on a missing bot token or weak JWT secrets
    auth_service = get_auth_service()

    client = AsyncIOMotorClient(
        settings.database_connection_string
    )  # * Connect to MongoDB

    await init_beanie(
        database=client[settings.database_name],
        document_models=DOCUMENT_MODELS,
    )
    logfire.info("Database initialized successfully")

    sweep_task = None
    if settings.session_sweep_interval_seconds > 0:
        sweep_task = asyncio.create_task(
            run_expiry_sweep(auth_service, settings.session_sweep_interval_seconds)
        )

    yield

    logfire.info("Shutting down dashboard auth service...")
    if sweep_task:
        sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweep_task
    client.close()
    logfire.info("Application shutdown complete")


app = FastAPI(
    title="Dashboard Auth API",
    description="Telegram login, bearer tokens and session management for the bot dashboard.",
    lifespan=lifespan,
)

instrument_libraries()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=settings.trusted_proxies)
app.add_middleware(GZipMiddleware, minimum_size=500)

register_exception_handlers(app)

app.include_router(auth.router)
