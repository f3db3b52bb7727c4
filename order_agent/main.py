"""
FastAPI application entry point.
Local control API for the order print agent: configuration, monitoring control, order history,
printers and notifications.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from order_agent.config import settings
from order_agent.errors import ConfigurationError, DispatchError, OwnershipViolation, PersistenceError
from order_agent.routers import config, monitoring, notifications, orders, printers
from order_agent.services.monitoring_service import get_monitoring_service
from order_agent.services.woocommerce_client import WooCommerceAPIError
from order_agent.utils.logger import configure_logging

# Configure logging first
configure_logging()
logger = structlog.get_logger()

SERVICE_NAME = "Dokan Order Print Agent"
VERSION = "1.0.0"

app = FastAPI(
    title=SERVICE_NAME,
    description="Polls a WooCommerce/Dokan store for a vendor's new orders and prints them",
    version=VERSION,
)

# Local UI only
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(monitoring.router)
app.include_router(config.router)
app.include_router(config.vendors_router)
app.include_router(orders.router)
app.include_router(printers.router)
app.include_router(notifications.router)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(OwnershipViolation)
async def ownership_violation_handler(request: Request, exc: OwnershipViolation):
    logger.warning(
        "Order lookup refused",
        path=request.url.path,
        order_id=exc.order_id,
        vendor_id=exc.vendor_id,
        security=True,
    )
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(WooCommerceAPIError)
async def store_api_error_handler(request: Request, exc: WooCommerceAPIError):
    return JSONResponse(
        status_code=502,
        content={"detail": exc.message, "upstream_status": exc.status_code},
    )


@app.exception_handler(DispatchError)
async def dispatch_error_handler(request: Request, exc: DispatchError):
    return JSONResponse(status_code=502, content={"detail": str(exc), "order_id": exc.order_id})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error("Local state could not be written", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.on_event("startup")
async def startup_event():
    """Trim the order history and resume monitoring if the config asks for it."""
    logger.info(f"{SERVICE_NAME} started", environment=settings.app_environment)

    service = get_monitoring_service()
    removed = service.history.clean_order_history(settings.order_history_retention_days)
    logger.info("Order history trimmed", removed=removed, retention_days=settings.order_history_retention_days)

    if service.get_config().autostart:
        logger.info("Autostart enabled, starting monitoring")
        await service.start_monitoring()


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the listener so the processed-order ledger is saved."""
    logger.info(f"{SERVICE_NAME} shutting down")
    await get_monitoring_service().shutdown()


@app.get("/")
async def root():
    """Root endpoint - also serves as a simple health check."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": VERSION,
        "monitoring": get_monitoring_service().running,
    }


@app.get("/health")
async def health():
    return {"status": "healthy", "monitoring": get_monitoring_service().running}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("order_agent.main:app", host=settings.control_api_host, port=settings.control_api_port)
