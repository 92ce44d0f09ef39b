import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.clinicnet.api.v1.routes_auth import router as auth_router_v1
from src.clinicnet.api.v1.routes_dashboard import router as dashboard_router_v1
from src.clinicnet.api.v1.routes_patients import router as patients_router_v1
from src.clinicnet.api.v1.routes_prescriptions import router as prescriptions_router_v1
from src.clinicnet.api.v1.routes_system import router as system_router_v1
from src.clinicnet.api.v1.routes_tenants import router as tenants_router_v1
from src.clinicnet.api.v1.routes_transfers import router as transfers_router_v1
from src.clinicnet.api.v1.routes_users import router as users_router_v1
from src.clinicnet.config import settings
from src.clinicnet.errors import ClinicNetError
from src.clinicnet.infra.db.bootstrap import ServiceContainer, build_services

logger = logging.getLogger("api")


async def clinicnet_error_handler(request: Request, exc: ClinicNetError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.code)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


def create_app(services: Optional[ServiceContainer] = None) -> FastAPI:
    """Build the API application around one set of services.

    Tests pass a container bound to a throw-away database; the module-level
    ``app`` below uses the settings from the environment.
    """

    app = FastAPI(title="ClinicNet Multi-Tenant Records API")
    app.state.services = services or build_services()

    @app.on_event("startup")
    async def on_startup() -> None:
        """Configure logging and create the global tables if they are missing.

        Partition tables are created by the provisioner when a tenant
        registers, never here.
        """

        logging.basicConfig(level=settings.log_level.upper())
        app.state.services.database.create_all()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        app.state.services.database.dispose()

    # CORS configuration – permissive by default for development. Tighten via
    # CORS_ALLOW_ORIGINS in production deployments.
    allow_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()] or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ClinicNetError, clinicnet_error_handler)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict:
        """Basic liveness check for the API root."""
        return {"status": "ok"}

    # Versioned API routers
    app.include_router(system_router_v1, prefix="/api/v1")
    app.include_router(tenants_router_v1, prefix="/api/v1")
    app.include_router(auth_router_v1, prefix="/api/v1")
    app.include_router(patients_router_v1, prefix="/api/v1")
    app.include_router(transfers_router_v1, prefix="/api/v1")
    app.include_router(prescriptions_router_v1, prefix="/api/v1")
    app.include_router(users_router_v1, prefix="/api/v1")
    app.include_router(dashboard_router_v1, prefix="/api/v1")
    return app


app = create_app()
