"""
Course Payments API - Main Application.

FastAPI application with CORS enabled for frontend communication.
The Supabase client and payment gateway are built once at startup from
Settings and shared through app.state.

Run with: uvicorn api.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.settings import Settings
from repositories.client import create_supabase_client
from services.payment_gateway import PaymentGateway

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Fails fast on missing secrets before serving any request
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app.state.settings = settings
    app.state.db = create_supabase_client(settings.supabase_url, settings.supabase_key)
    app.state.gateway = PaymentGateway(
        key_id=settings.razorpay_key_id,
        key_secret=settings.razorpay_key_secret,
        webhook_secret=settings.razorpay_webhook_secret,
    )
    logger.info("Course payments API %s started", __version__)
    yield


# Create FastAPI application
app = FastAPI(
    title="Course Payments API",
    description="Course pricing, checkout, payment settlement and access checks",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS - Allow all origins for development
# TODO: Restrict origins to the storefront domain once it is fixed
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "course-payments-api"
    }


# Import and include routers
from api.routers import courses, payments

app.include_router(payments.router, prefix="/api/v1", tags=["Payments"])
app.include_router(courses.router, prefix="/api/v1", tags=["Courses"])
