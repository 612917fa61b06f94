from fastapi import FastAPI

from certification import __version__
from certification.api.routers import applications, health, payments
from certification.common.logger import setup_logger
from certification.core.config import get_settings

settings = get_settings()
setup_logger(settings)

app = FastAPI(
    title=settings.app_name,
    description="Certification application workflow: status transitions, payments and audit trail",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Include routers
app.include_router(applications.router, prefix="/api")
app.include_router(payments.router, prefix="/api")
app.include_router(health.router)


@app.get("/")
def root():
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs" if settings.debug else None,
    }
