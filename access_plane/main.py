import uvicorn
from fastapi import FastAPI

from access_plane.api.routes.admin_entitlements import router as admin_entitlements_router
from access_plane.api.routes.admin_otc import router as admin_otc_router
from access_plane.api.routes.admin_session import router as admin_session_router
from access_plane.api.routes.entitlement import router as entitlement_router
from access_plane.api.routes.guard import router as guard_router
from access_plane.api.routes.health import router as health_router
from access_plane.api.routes.otc import router as otc_router
from access_plane.core.config import get_settings
from access_plane.core.logging import configure_logging


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    docs_enabled = settings.app_env != "prod"
    app = FastAPI(
        title="Access Plane API",
        version="0.1.0",
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.include_router(health_router)
    app.include_router(guard_router)
    app.include_router(admin_session_router)
    app.include_router(admin_otc_router)
    app.include_router(otc_router)
    app.include_router(admin_entitlements_router)
    app.include_router(entitlement_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "access_plane.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
