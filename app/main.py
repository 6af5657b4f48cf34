from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from datetime import datetime, timezone
from typing import Optional
import logging

# Load environment variables as early as possible
load_dotenv()

from .config import Settings, settings
from .database import build_engine, create_db_and_tables
from .exceptions import http_exception_handler
from .middleware import LoggingMiddleware, ErrorHandlingMiddleware
from .routers import otp_router
from .application.ports.otp_provider import OTPProvider
from .application.ports.session_repo import OtpProviderName
from .application.services.audit_dispatcher import AuditDispatcher
from .application.services.identity_service import IdentityService
from .application.services.otp_service import OTPService
from .application.services.provider_selector import ProviderConfig, select_provider
from .infrastructure.audit.std_logger import StdAuditLogger
from .infrastructure.otp.local_code_provider import LocalCodeProvider
from .infrastructure.otp.log_transport import LogSmsTransport
from .infrastructure.otp.memory_session_store import InMemorySessionStore
from .infrastructure.otp.smsru_transport import SmsRuTransport
from .infrastructure.otp.twilio_provider import TwilioOTPProvider
from .infrastructure.persistence.sqlalchemy.repositories.otp_request_repository_sql import SqlOtpRequestRepository
from .infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlIdentityDirectory
from .infrastructure.qr.qrcode_renderer import QrCodeRenderer

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)


def build_otp_provider(config: ProviderConfig) -> OTPProvider:
    if config.provider is OtpProviderName.TWILIO:
        return TwilioOTPProvider(config)
    if config.provider is OtpProviderName.SMSRU:
        transport = SmsRuTransport(
            api_id=config.smsru_api_id,
            sender=config.smsru_from or None,
            url=config.smsru_url,
            timeout_seconds=config.gateway_timeout_seconds,
        )
        return LocalCodeProvider(OtpProviderName.SMSRU, transport, config.sms_template)
    return LocalCodeProvider(OtpProviderName.MOCK, LogSmsTransport(), config.sms_template)


def build_otp_service(app_settings: Settings, engine=None, otp_provider: Optional[OTPProvider] = None) -> OTPService:
    config = select_provider(app_settings)
    if engine is not None:
        audit_logger = SqlOtpRequestRepository(engine)
        identity_service = IdentityService(directory=SqlIdentityDirectory(engine))
    else:
        logger.warning("DATABASE_URL is empty: durable audit trail and identity provisioning are disabled")
        audit_logger = StdAuditLogger()
        identity_service = None

    return OTPService(
        config=config,
        otp_provider=otp_provider or build_otp_provider(config),
        session_store=InMemorySessionStore(),
        audit=AuditDispatcher(audit_logger),
        identity_service=identity_service,
        qr_renderer=QrCodeRenderer(),
        report_max_bytes=app_settings.OTP_REPORT_MAX_BYTES,
    )


def create_app(app_settings: Optional[Settings] = None, otp_provider: Optional[OTPProvider] = None) -> FastAPI:
    app_settings = app_settings or settings
    engine = build_engine(app_settings.DATABASE_URL, echo=app_settings.DEBUG)
    otp_service = build_otp_service(app_settings, engine=engine, otp_provider=otp_provider)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info(f"Starting {app_settings.APP_NAME}. Provider: {otp_service.config.provider.value}")
        app.state.db_init_ok = True
        app.state.db_init_error = None
        if engine is not None:
            try:
                create_db_and_tables(engine)
            except Exception as e:
                # Do not crash the app; report via health endpoint
                app.state.db_init_ok = False
                app.state.db_init_error = str(e)
                logger.exception("Database initialization failed")
        yield
        # Shutdown
        logger.info(f"Shutting down {app_settings.APP_NAME}...")
        await otp_service.audit.drain()
        otp_service.audit.close()

    app = FastAPI(
        title=app_settings.APP_NAME,
        version=app_settings.APP_VERSION,
        debug=app_settings.DEBUG,
        lifespan=lifespan,
        docs_url=("/docs" if app_settings.DOCS_ENABLED else None),
        redoc_url=("/redoc" if app_settings.DOCS_ENABLED else None),
        openapi_url=("/openapi.json" if app_settings.DOCS_ENABLED else None)
    )
    app.state.otp_service = otp_service

    # Add custom exception handler
    app.add_exception_handler(HTTPException, http_exception_handler)

    # Add middleware
    app.add_middleware(ErrorHandlingMiddleware, debug=app_settings.DEBUG)
    app.add_middleware(LoggingMiddleware)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.allowed_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(otp_router.router)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {
            "status": "ok" if getattr(app.state, "db_init_ok", True) else "degraded",
            "service": app_settings.APP_NAME,
            "version": app_settings.APP_VERSION,
            "provider": otp_service.config.provider.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT)
