"""
Email OTP Login - FastAPI Backend
Main application entry point with CORS, error handlers and routing setup
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
import uvicorn
import asyncio
import logging
import os
from dotenv import load_dotenv

# Load environment variables BEFORE importing settings and services so they see them
load_dotenv()
from datetime import datetime
from typing import Optional

from config import Settings
from routes.auth_routes import router as auth_router
from services.container import ServiceContainer
from services.errors import AuthFlowError

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message, "code": code})


def create_app(settings: Optional[Settings] = None, services: Optional[ServiceContainer] = None) -> FastAPI:
    settings = settings or Settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    logging.getLogger().setLevel(settings.log_level)
    services = services or ServiceContainer(settings)

    app = FastAPI(
        title="Email OTP Login",
        description="One-time passcode login by email with short-lived session tokens",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.settings = settings
    app.state.services = services

    # CORS middleware for frontend integration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router, tags=["Auth"])

    @app.get("/")
    async def root():
        """Root endpoint with basic API information"""
        return {
            "message": "Email OTP Login API",
            "version": "1.0.0",
            "status": "active",
            "endpoints": {
                "health": "/ping",
                "send_otp": "/send-otp",
                "verify_otp": "/verify-otp",
                "register": "/register",
                "exists": "/exists",
                "me": "/me",
                "docs": "/docs"
            }
        }

    @app.get("/ping")
    async def health_check(check_mail: bool = False):
        """Health check endpoint. ?check_mail=true also opens an SMTP connection."""
        body = {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "service": "email-otp-login",
            "mail_enabled": services.mailer.enabled,
            "janitor_running": services.janitor.running,
            "pending_otps": len(services.otp.store),
            "live_tokens": len(services.tokens.store),
        }
        if check_mail:
            body["mail_connection"] = await asyncio.to_thread(services.mailer.test_connection)
        return body

    @app.on_event("startup")
    async def _start_janitor():
        services.janitor.start()

    @app.on_event("shutdown")
    async def _stop_janitor():
        services.janitor.stop()

    @app.exception_handler(AuthFlowError)
    async def auth_flow_error_handler(request: Request, exc: AuthFlowError):
        return _error(exc.status_code, exc.message, exc.code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error(400, "Invalid request body", "validation_error")

    @app.exception_handler(404)
    async def not_found_handler(request, exc):
        """Custom 404 handler"""
        return _error(404, "Endpoint not found", "not_found")

    @app.exception_handler(500)
    async def internal_error_handler(request, exc):
        """Custom 500 handler"""
        logger.exception(f"Unhandled error on {request.url.path}")
        return _error(500, "Internal server error", "internal_error")

    # Optional static bundle; API routes above take precedence.
    if settings.frontend_dir and os.path.isdir(settings.frontend_dir):
        app.mount("/app", StaticFiles(directory=settings.frontend_dir, html=True), name="frontend")

    return app


app = create_app()

if __name__ == "__main__":
    settings = app.state.settings
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower()
    )
