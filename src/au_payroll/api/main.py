from fastapi import FastAPI

from au_payroll.api.routes import awards, health, payroll
from au_payroll.core.config import settings
from au_payroll.core.logging import configure_logging, get_logger
from au_payroll.core.monitoring import configure_error_monitoring
from au_payroll.core.observability import configure_observability
from au_payroll.db.session import init_db

configure_logging(settings.log_level)
configure_observability()
configure_error_monitoring()
logger = get_logger(__name__)

app = FastAPI(title=settings.app_name)

app.include_router(health.router)
app.include_router(payroll.router)
app.include_router(awards.router)


@app.on_event("startup")
def startup_event() -> None:
    init_db()
    logger.info("startup_complete", env=settings.env)


@app.get("/")
def root() -> dict[str, str]:
    return {"message": "AU payroll engine running", "environment": settings.env}
