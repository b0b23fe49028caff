# FastAPI Application Entry Point
import logging
from fastapi import FastAPI
import httpx

# Configuration and Observability
from kyc_case_service.app.config import settings
from kyc_case_service.app.observability import setup_opentelemetry, logger

# Initialize OpenTelemetry
setup_opentelemetry(service_name=settings.SERVICE_NAME_API)

# Import instrumentors after OTel SDK is initialized
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.pymongo import PymongoInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

# Persistence and notifications
from kyc_case_service.infrastructure.database.connection import connect_to_mongo, close_mongo_connection, get_db
from kyc_case_service.infrastructure.database.case_store import MongoCaseRepository, MongoPartyRepository
from kyc_case_service.infrastructure.database.in_memory import InMemoryCaseRepository, InMemoryPartyRepository
from kyc_case_service.infrastructure.kafka.producer import (
    startup_kafka_producer, shutdown_kafka_producer, get_notification_publisher,
)

# API Routers
from kyc_case_service.app.api.v1.endpoints import health as health_router
from kyc_case_service.app.api.v1.endpoints import cases as cases_router
from kyc_case_service.app.api.v1.endpoints import documents as documents_router
from kyc_case_service.app.api.v1.endpoints import parties as parties_router

# --- FastAPI Application Instance ---
app = FastAPI(
    title="KYC Case Service",
    description="KYC case workflow: role-gated approvals, document requirement gating and party linking.",
    version="0.4.0"
)


async def init_repositories(application: FastAPI):
    if settings.CASE_STORE_BACKEND == "memory":
        application.state.db = None
        application.state.case_repository = InMemoryCaseRepository()
        application.state.party_repository = InMemoryPartyRepository()
        logger.info("Using in-memory case and party repositories.")
        return

    await connect_to_mongo()
    db = await get_db()
    application.state.db = db
    case_repository = MongoCaseRepository(db)
    party_repository = MongoPartyRepository(db)
    await case_repository.ensure_indexes()
    await party_repository.ensure_indexes()
    application.state.case_repository = case_repository
    application.state.party_repository = party_repository
    PymongoInstrumentor().instrument()
    logger.info("MongoDB repositories ready and PyMongo instrumented.")


# --- Event Handlers for connections & OTel Instrumentation ---
@app.on_event("startup")
async def startup_event():
    logger.info("FastAPI application startup...")
    app.state.http_client = httpx.AsyncClient(timeout=settings.DEFAULT_HTTP_TIMEOUT)
    HTTPXClientInstrumentor().instrument()
    logger.info(f"HTTPX AsyncClient initialized with timeout {settings.DEFAULT_HTTP_TIMEOUT} and instrumented.")

    await init_repositories(app)

    await startup_kafka_producer()
    app.state.notification_publisher = get_notification_publisher()
    logger.info(f"Notification publisher: {type(app.state.notification_publisher).__name__}.")

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("FastAPI application shutdown...")

    if getattr(app.state, 'http_client', None):
        await app.state.http_client.aclose()
        logger.info("HTTPX AsyncClient closed.")

    await shutdown_kafka_producer()
    close_mongo_connection()

FastAPIInstrumentor.instrument_app(app)
logger.info("FastAPI instrumentation complete.")

# Include API Routers
app.include_router(health_router.router, prefix="/api/v1")
app.include_router(cases_router.router, prefix="/api/v1")
app.include_router(documents_router.router, prefix="/api/v1")
app.include_router(parties_router.router, prefix="/api/v1")

logger.info("API routers included. Application setup complete.")

# To run: uvicorn kyc_case_service.app.main:app --reload --port 8000
