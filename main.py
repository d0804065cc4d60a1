from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
import uvicorn
from dotenv import load_dotenv
import asyncio
import sys

from app.auth.service.auth_service import AuthService
from app.chat.api.route import chat_router
from app.chat.repository.chat_repository import ChatRepository
from app.chat.service.chat_service import ChatService
from app.chat.service.conversation_service import ConversationManager
from app.chat.service.service import IChatRepository
from app.core.config import settings
from app.core.exceptions import ChatAppError
from app.core.logger import get_logger
from app.llm.service.provider.base_provider import BaseProvider
from app.llm.service.provider.pydantic_ai_provider import PydanticAIProvider
from app.llm.service.stream_adapter import TokenStreamAdapter
from app.memory.api.route import memory_router
from app.memory.repository.memory_repository import MemoryRepository
from app.memory.service.memory_service import MemoryService
from app.memory.service.service import IMemoryRepository
from app.upload.api.route import upload_router
from app.upload.repository.upload_repository import UploadRepository
from app.upload.service.service import IObjectStore, IUploadRepository
from app.upload.service.upload_service import UploadService
from pkg.auth_token_client.client import TokenClient
from pkg.db_util.postgres_conn import PostgresConnection, close_all_engines
from pkg.db_util.types import PostgresConfig
from pkg.file_processor.processor import FileProcessor
from pkg.object_store.s3_client import S3ObjectStore

# App & Logger Setup
# Load .env so os.getenv picks up values from your .env file
load_dotenv()

logger = get_logger("relay-chat")

SERVICE_NAME = "relay-chat"
PUBLIC_PATHS = ("/health", "/", "/docs", "/openapi.json")


def wire_services(
    app: FastAPI,
    *,
    chat_repo: IChatRepository,
    memory_repo: IMemoryRepository,
    upload_repo: IUploadRepository,
    object_store: IObjectStore,
    provider: BaseProvider,
    file_processor: FileProcessor,
    token_client: TokenClient,
) -> None:
    """Build every service once and expose it on app.state for the dependencies."""
    memory_service = MemoryService(memory_repo)
    adapter = TokenStreamAdapter(provider, settings.fallback_models, settings.DEFAULT_MODEL)

    app.state.logger = logger
    app.state.token_client = token_client
    app.state.auth_service = AuthService(token_client, logger)
    app.state.memory_service = memory_service
    app.state.conversation_service = ConversationManager(chat_repo)
    app.state.chat_service = ChatService(adapter, memory_service, file_processor)
    app.state.upload_service = UploadService(object_store, upload_repo, file_processor, settings.max_upload_bytes)
    app.state.startup_complete = True
    app.state.startup_error = None


def _degraded(app: FastAPI, error: str) -> None:
    app.state.logger = logger
    app.state.postgres_conn = None
    app.state.startup_complete = False
    app.state.startup_error = error


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager - ensures startup completes before accepting requests"""
    logger.info(f"{settings.APP_NAME} starting up...")
    logger.info(f"Python: {sys.version}")

    postgres_config = PostgresConfig(
        host=settings.POSTGRES_HOST.strip(),
        port=settings.POSTGRES_PORT,
        username=settings.POSTGRES_USER.strip(),
        password=settings.POSTGRES_PASSWORD,
        database=settings.POSTGRES_DB.strip(),
        pool_timeout=30,
    )
    if not postgres_config.is_configured:
        error_msg = "Missing required environment variables: POSTGRES_HOST, POSTGRES_USER"
        logger.error(error_msg)
        logger.error("Application will start in degraded mode")
        _degraded(app, error_msg)
        yield
        return

    try:
        postgres_conn = PostgresConnection(postgres_config, logger)
        logger.info("Initializing database engine with retry logic...")
        try:
            await asyncio.wait_for(postgres_conn.get_engine(max_retries=5, initial_delay=2.0), timeout=60.0)
        except asyncio.TimeoutError:
            raise ConnectionError("Database connection timeout - check network/credentials")
        await postgres_conn.create_tables()

        if not settings.S3_BUCKET_NAME:
            logger.warning("S3_BUCKET_NAME not set; uploads will fail until it is configured")

        wire_services(
            app,
            chat_repo=ChatRepository(postgres_conn),
            memory_repo=MemoryRepository(postgres_conn),
            upload_repo=UploadRepository(postgres_conn),
            object_store=S3ObjectStore(
                settings.S3_BUCKET_NAME,
                logger,
                region=settings.S3_REGION,
                endpoint_url=settings.S3_ENDPOINT_URL,
                public_base_url=settings.S3_PUBLIC_BASE_URL,
                access_key_id=settings.S3_ACCESS_KEY_ID,
                secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            ),
            provider=PydanticAIProvider(),
            file_processor=FileProcessor(logger, timeout_ms=settings.FILE_FETCH_TIMEOUT_MS),
            token_client=TokenClient(settings.JWT_SUPER_SECRET),
        )
        app.state.postgres_conn = postgres_conn
        logger.info("✓ Startup complete - application is ready!")

    except Exception as e:
        logger.error(f"✗ Startup failed: {e}", exc_info=True)
        logger.error("Application will start in degraded mode - check logs above")
        _degraded(app, str(e))

    yield

    logger.info(f"{settings.APP_NAME} shutting down...")
    await close_all_engines()


app = FastAPI(
    title=settings.APP_NAME,
    description="Streaming chat relay with conversation persistence",
    version="1.0.0",
    lifespan=lifespan,
)


# Startup Check Middleware - ensures no requests processed before startup completes
class StartupCheckMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        if not getattr(request.app.state, "startup_complete", False):
            startup_error = getattr(request.app.state, "startup_error", None)
            message = (
                f"Service initialization failed: {startup_error}"
                if startup_error
                else "Service is starting up. Please retry in a few seconds."
            )
            return JSONResponse(status_code=503, content={"status": False, "message": message, "data": None})

        return await call_next(request)


app.add_middleware(StartupCheckMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # adjust in prod
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": False, "message": message, "data": None},
        headers=headers,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Convert HTTPException to standardized error format"""
    return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.debug(f"Request validation failed on {request.url.path}: {exc.errors()}")
    return _error(400, "Missing required fields")


@app.exception_handler(ChatAppError)
async def chat_app_error_handler(request: Request, exc: ChatAppError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        return _error(exc.status_code, exc.public_message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return _error(exc.status_code, exc.message, headers=headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=exc)
    return _error(500, "Internal server error")


# Routers
app.include_router(chat_router)
app.include_router(memory_router)
app.include_router(upload_router)


@app.get("/health")
async def health():
    """Liveness plus startup status; always 200 so platform checks pass during startup."""
    startup_complete = getattr(app.state, "startup_complete", False)
    startup_error = getattr(app.state, "startup_error", None)

    if not startup_complete:
        return {
            "status": "starting" if startup_error is None else "degraded",
            "service": SERVICE_NAME,
            "message": startup_error or "Application is still starting up...",
            "startup_complete": False,
        }

    checks = {
        "database": "✓ connected" if getattr(app.state, "postgres_conn", None) else "✗ not_initialized",
    }
    for name in ("auth_service", "chat_service", "conversation_service", "memory_service", "upload_service"):
        checks[name] = "✓ ready" if getattr(app.state, name, None) else "✗ not_ready"

    all_healthy = all(value.startswith("✓") for value in checks.values())
    return {
        "status": "ok" if all_healthy else "degraded",
        "service": SERVICE_NAME,
        "checks": checks,
        "startup_complete": True,
    }


@app.get("/")
async def root():
    """Root endpoint - simple check that app is running"""
    return {
        "service": SERVICE_NAME,
        "version": "1.0.0",
        "status": "running",
        "health_check": "/health",
    }


if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
