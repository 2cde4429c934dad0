import logging

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from syncpay.core.config import settings
from syncpay.core.database import db_manager
from syncpay.core.dependencies import get_db
from syncpay.core.global_error_handler import register_global_exception_handlers
from syncpay.modules.invoice.api import router as invoice_router
from syncpay.modules.payment.api import router as payment_router
from syncpay.modules.subscription.api import router as subscription_router

logger = logging.getLogger(__name__)

app = FastAPI(
    title=f"{settings.APP_NAME} Billing API",
    description="Payment orders, gateway reconciliation, subscription activation and invoices.",
    version="1.0.0"
)

# Register global exception handlers
register_global_exception_handlers(app)


@app.on_event("shutdown")
async def shutdown_event():
    """Close database connections on shutdown."""
    await db_manager.close()
    logger.info("Database engine closed.")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    expose_headers=["Content-Disposition"],
)

# Include routers
app.include_router(payment_router, prefix="/api")
app.include_router(invoice_router, prefix="/api")
app.include_router(subscription_router, prefix="/api")


@app.get("/api/")
async def root():
    return {"message": f"{settings.APP_NAME} Billing API is running"}


@app.get("/api/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    await db.execute(text("SELECT 1"))
    return {"status": "ok"}
