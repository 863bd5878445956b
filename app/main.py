"""
Campus Attendance - attendance integrity service
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from atams.logging import setup_logging_from_settings
from atams.middleware import RequestIDMiddleware, create_rate_limit_middleware
from atams.exceptions import setup_exception_handlers
from atams.api import health_router

from app.core.config import settings
from app.api.v1.api import api_router

# Setup logging
setup_logging_from_settings(settings)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    description="Campus attendance with network trust checks, integrity flags and QR event check-in",
    swagger_ui_parameters={
        "persistAuthorization": True,
    },
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.cors_methods_list,
    allow_headers=settings.cors_headers_list,
)

# Request ID middleware
app.add_middleware(RequestIDMiddleware)

# Rate limiting (honours RATE_LIMIT_ENABLED)
app.add_middleware(create_rate_limit_middleware(settings))

# Exception handlers
setup_exception_handlers(app)

# Include routers
app.include_router(health_router, prefix="/health", tags=["Health"])
app.include_router(api_router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    """API Root - Basic information"""
    return {"name": settings.APP_NAME, "version": settings.APP_VERSION}
