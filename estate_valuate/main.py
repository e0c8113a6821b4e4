from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Routers
from .routers.area_prices import router as area_prices_router
from .routers.guland_proxy import router as guland_proxy_router
from .routers.location import router as location_router
from .routers.maps import router as maps_router
from .routers.planning import model_dep as planning_model_dep
from .routers.planning import router as planning_router
from .routers.price_trend import router as price_trend_router
from .routers.property import router as property_router
from .routers.property import model_dep as property_model_dep
from .routers.utilities import router as utilities_router
from .routers.valuation import router as valuation_router

# Core modules
from .core.config import settings
from .core.errors import register_error_handlers
from .core.logging import configure_logging, CorrelationIdMiddleware
from .core.metrics import PromMiddleware, metrics_endpoint
from .core.security import rate_limit, require_api_key

def create_app() -> FastAPI:
    """
    App factory so tests and ASGI servers can instantiate cleanly.
    """
    configure_logging()  # JSON logs + correlation-id filter

    app = FastAPI(
        title="Estate Valuate API",
        version="1.0.0",
        description="Aggregates geocoding, area prices, price trends, amenities, planning data and valuation for Vietnamese real estate.",
    )

    allow_origins = [o.strip() for o in settings.ALLOW_ORIGINS.split(",")] if settings.ALLOW_ORIGINS else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["ETag", "X-Request-Id"],
    )

    app.add_middleware(CorrelationIdMiddleware)
    if settings.PROMETHEUS_ENABLED:
        app.add_middleware(PromMiddleware)

    register_error_handlers(app)

    # Missing LLM credentials fail here rather than on the first request
    planning_model_dep()
    property_model_dep()

    # Meta routes
    @app.get("/health", tags=["meta"])
    def health():
        return {"status": "ok"}

    @app.get("/ping", tags=["meta"])
    def ping():
        return {"pong": True}

    if settings.PROMETHEUS_ENABLED:
        app.add_route("/metrics", metrics_endpoint, methods=["GET"])

    # Business routes
    guarded = [Depends(require_api_key), Depends(rate_limit)]
    for router, tag in (
        (area_prices_router, "area-prices"),
        (price_trend_router, "price-trend"),
        (utilities_router, "utilities"),
        (location_router, "location"),
        (valuation_router, "valuation"),
        (planning_router, "planning"),
        (property_router, "property"),
        (maps_router, "maps"),
        (guland_proxy_router, "guland-proxy"),
    ):
        app.include_router(router, prefix="/api", tags=[tag], dependencies=guarded)

    return app

app = create_app()
