"""FastAPI application factory for the ordering service.

Each request runs inside the ordering domain context. Domain exceptions are
translated into HTTP answers here; anything unexpected surfaces as 500.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError

from ordering.api.routes import admin_router, checkout_router, order_router, webhook_router
from ordering.domain import ordering
from ordering.errors import GatewayError, InvalidSignature, OrderAccessDenied, TransactionFailure
from ordering.services import Services
from ordering.utils.logging import add_context, clear_context

logger = structlog.get_logger(__name__)


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def request_invalid(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": jsonable_errors(exc)})

    @app.exception_handler(ValidationError)
    async def domain_invalid(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"detail": exc.messages})

    @app.exception_handler(ObjectNotFoundError)
    async def not_found(request: Request, exc: ObjectNotFoundError):
        return JSONResponse(status_code=404, content={"detail": exc.messages})

    @app.exception_handler(OrderAccessDenied)
    async def forbidden(request: Request, exc: OrderAccessDenied):
        return JSONResponse(status_code=403, content={"detail": "Order not available"})

    @app.exception_handler(InvalidSignature)
    async def bad_signature(request: Request, exc: InvalidSignature):
        logger.warning("payment_notification_rejected", reason=str(exc))
        return JSONResponse(status_code=400, content={"detail": "Invalid signature"})

    @app.exception_handler(GatewayError)
    async def gateway_unavailable(request: Request, exc: GatewayError):
        return JSONResponse(
            status_code=503,
            content={"detail": "Payment is temporarily unavailable, please try again"},
        )

    @app.exception_handler(TransactionFailure)
    async def transaction_failed(request: Request, exc: TransactionFailure):
        return JSONResponse(status_code=500, content={"detail": "Order could not be placed, please try again"})


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [{"loc": list(error["loc"]), "msg": error["msg"]} for error in exc.errors()]


def create_app(services: Services) -> FastAPI:
    app = FastAPI(
        title="Storefront Ordering API",
        description="Checkout, payment reconciliation and order status",
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the ordering domain context for each request."""
        clear_context()
        add_context(method=request.method, path=request.url.path)
        with ordering.domain_context():
            response = await call_next(request)
        return response

    _register_exception_handlers(app)

    app.include_router(checkout_router)
    app.include_router(webhook_router)
    app.include_router(order_router)
    app.include_router(admin_router)

    @app.get("/health")
    async def health():
        return JSONResponse(content={"status": "ok", "domain": ordering.name})

    return app
