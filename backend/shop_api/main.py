"""
Shop API main application.
Entry point for the FastAPI server.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from shared.config.settings import settings
from shared.infrastructure.correlation import CorrelationIdMiddleware
from shared.security.rate_limit import limiter, rate_limit_exceeded_handler
from shared.utils.exceptions import AppException
from shop_api.core import configure_cors, lifespan, register_middlewares
from shop_api.routers.admin import router as admin_router
from shop_api.routers.payments import paymob_router
from shop_api.routers.public import health_router
from shop_api.routers.storefront import (
    cart_router,
    catalog_router,
    checkout_router,
    orders_router,
    promo_router,
    settings_router,
    stock_router,
)


app = FastAPI(
    title="Crumbled Shop API",
    description="Cookie shop storefront: catalog, cart, checkout and kitchen back office",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


# =============================================================================
# Error responses
# =============================================================================


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_payload(),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": "Invalid request",
            "code": "invalid_input",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


# =============================================================================
# Middlewares
# =============================================================================

configure_cors(app)
register_middlewares(app)
app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router)
app.include_router(catalog_router)
app.include_router(stock_router)
app.include_router(cart_router)
app.include_router(checkout_router)
app.include_router(orders_router)
app.include_router(promo_router)
app.include_router(settings_router)
app.include_router(paymob_router)
app.include_router(admin_router)


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "shop_api.main:app",
        host="0.0.0.0",
        port=settings.api_port,
        reload=settings.debug,
    )
