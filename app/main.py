"""
FastAPI Application Entry Point

Self-service ordering kiosk backend: order numbering, persistence and
out-of-band receipt printing.

Endpoints:
    - POST /api/orderfood/orders: Create a paid order
    - GET /api/orderfood/orders/{code}: Order with lines and print outcome
    - GET /api/orderfood/meals: Active catalog items
    - GET /api/orderfood/payment-methods: Active payment methods
    - GET /api/orderfood/settings: System settings
    - GET /api/printer/status: Printer driver and device state
    - GET /health: System health check

Version: 1.0.0
"""

import asyncio
import sys
import logging
from datetime import datetime
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from app.core.config import get_settings, setup_logging
from app.core.exceptions import OrderFoodError
from app.database import async_session_maker, get_db, init_db, engine
from app.models import MenuItem, Order, PaymentMethod, Setting
from app.schemas import (
    OrderCreate,
    OrderCreateResponse,
    OrderLineResponse,
    OrderResponse,
    MenuItemResponse,
    PaymentMethodResponse,
    SettingsResponse,
    PrinterStatusResponse,
    ErrorResponse,
    HealthResponse,
)
from app.services.orders import OrderLineInput, OrderService, load_order
from app.services.print_jobs import get_print_dispatcher
from app.services.printing import PrintResult, get_print_adapter, reset_print_adapter
from app.services.settings_store import get_setting, get_settings_map

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

async def initialize_printer(adapter) -> Optional[PrintResult]:
    """Run the printer self-test at startup when init_on_startup is set."""
    if not adapter.config.init_on_startup:
        return None
    if not adapter.driver_loaded:
        logger.warning("⚠️ Printer init skipped: driver not loaded")
        return None

    result = await asyncio.to_thread(adapter.initialize)
    if result.success:
        logger.info("✅ Printer initialized")
    else:
        logger.warning(f"⚠️ Printer init failed: {result.message}")
    return result


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    # Initialize database
    await init_db()
    logger.info("✅ Database initialized")

    # Printer and background dispatch
    adapter = get_print_adapter()
    logger.info(f"✅ Print Service: {adapter.provider_name} (driver loaded: {adapter.driver_loaded})")
    await initialize_printer(adapter)

    dispatcher = get_print_dispatcher()
    await dispatcher.start()
    logger.info(f"✅ Print Dispatch: {dispatcher.mode}")

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await dispatcher.stop()
    reset_print_adapter()
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Self-service kiosk ordering: atomic daily order numbering and "
        "thermal receipt printing."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # The kiosk front-end is served from another origin
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_order_service() -> OrderService:
    """Order service bound to the app database and the print dispatcher."""
    return OrderService(async_session_maker, dispatcher=get_print_dispatcher())


def order_to_response(order: Order) -> OrderResponse:
    return OrderResponse(
        code=order.code,
        store_id=order.store_id,
        daily_sequence=order.daily_sequence,
        ticket_number=order.ticket_number,
        order_type=order.order_kind.wire_value,
        total_amount=order.total_amount,
        payment_method_id=order.payment_method_id,
        status=order.status.value,
        print_status=order.print_status.value,
        print_message=order.print_message,
        created_at=order.created_at,
        items=[
            OrderLineResponse(
                meal_id=line.menu_item_id,
                name=line.menu_item.display_name if line.menu_item else None,
                quantity=line.quantity,
                price=line.price,
                subtotal=line.subtotal,
            )
            for line in order.lines
        ],
    )


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db)
) -> HealthResponse:
    """Verify the database and printer are usable."""

    # Check database
    db_status = "healthy"
    try:
        await db.execute(select(1))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    adapter = get_print_adapter()
    if adapter.driver_loaded:
        printer_status = "healthy"
    else:
        printer_status = f"simulated ({adapter.provider_name})"

    overall = "operational" if db_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        printer=printer_status,
        print_dispatch=settings.print_dispatch.value,
        timestamp=datetime.now(),
    )


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.post(
    "/api/orderfood/orders",
    response_model=OrderCreateResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="Create Order",
)
async def create_order(
    order_data: OrderCreate,
    service: OrderService = Depends(get_order_service),
) -> OrderCreateResponse:
    """
    Create a paid kiosk order.

    The response is returned as soon as the order is committed; the
    receipt prints in the background and its outcome is stored on the
    order (see GET /api/orderfood/orders/{code}).
    """
    logger.info(
        f"Creating {order_data.order_type.value} order: "
        f"{len(order_data.items)} lines, total {order_data.total_amount}"
    )

    created = await service.create_order(
        lines=[
            OrderLineInput(
                menu_item_id=item.meal_id,
                quantity=item.quantity,
                price=item.price,
            )
            for item in order_data.items
        ],
        total_amount=order_data.total_amount,
        store_id=order_data.store_id or settings.default_store_id,
        order_kind=order_data.order_type,
        payment_method_id=order_data.payment_method_id,
    )

    return OrderCreateResponse(
        success=True,
        message="Order created, receipt is printing",
        code=created.code,
        daily_sequence=created.daily_sequence,
        ticket_number=created.ticket_number,
    )


@app.get(
    "/api/orderfood/orders/{code}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def get_order(
    code: str,
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    """Get one order by its long-form code."""
    order = await load_order(db, code=code)

    if not order:
        raise HTTPException(status_code=404, detail=f"Order {code} not found")

    return order_to_response(order)


# =============================================================================
# CATALOG & SETTINGS ENDPOINTS
# =============================================================================

@app.get(
    "/api/orderfood/meals",
    response_model=list[MenuItemResponse],
    tags=["Catalog"],
)
async def list_meals(
    category: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> list[MenuItemResponse]:
    """List active catalog items, optionally for one category."""
    query = (
        select(MenuItem)
        .where(MenuItem.is_active.is_(True))
        .order_by(MenuItem.sort_order, MenuItem.id)
    )
    if category:
        query = query.where(MenuItem.category == category)

    result = await db.execute(query)
    return [MenuItemResponse.from_item(item) for item in result.scalars()]


@app.get(
    "/api/orderfood/payment-methods",
    response_model=list[PaymentMethodResponse],
    tags=["Catalog"],
)
async def list_payment_methods(
    db: AsyncSession = Depends(get_db),
) -> list[PaymentMethodResponse]:
    """List active payment methods."""
    result = await db.execute(
        select(PaymentMethod)
        .where(PaymentMethod.is_active.is_(True))
        .order_by(PaymentMethod.sort_order, PaymentMethod.id)
    )
    return [PaymentMethodResponse.from_method(m) for m in result.scalars()]


@app.get(
    "/api/orderfood/settings",
    response_model=SettingsResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Settings"],
)
async def read_settings(
    key: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> SettingsResponse:
    """One setting when `key` is given, otherwise all of them."""
    if key:
        row = await db.get(Setting, key)
        if row is None:
            raise HTTPException(status_code=404, detail=f"Setting {key} does not exist")
        return SettingsResponse(data=await get_setting(db, key))

    return SettingsResponse(data=await get_settings_map(db))


# =============================================================================
# PRINTER ENDPOINTS
# =============================================================================

@app.get(
    "/api/printer/status",
    response_model=PrinterStatusResponse,
    tags=["Printer"],
)
async def printer_status() -> PrinterStatusResponse:
    """Driver and port state; probes the device only when the port is open."""
    adapter = get_print_adapter()
    info = await asyncio.to_thread(adapter.info)

    return PrinterStatusResponse(
        provider=info.provider,
        driver_loaded=info.available,
        port_open=info.port_open,
        status=info.status.description if info.status else None,
        status_code=int(info.status) if info.status else None,
        details=info.details,
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(OrderFoodError)
async def order_food_exception_handler(request: Request, exc: OrderFoodError) -> JSONResponse:
    """Domain errors: 400 for rejected input, 500 for storage failures."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.message} ({exc.detail})")
    else:
        logger.info(f"Request rejected: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.message,
            "detail": exc.detail if (settings.debug or exc.status_code < 500) else None,
        },
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are reported like other rejected input."""
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Invalid order data",
            "detail": str(exc.errors()),
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


# =============================================================================
# DEVELOPMENT SERVER
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )
