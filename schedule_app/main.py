"""
Main FastAPI Application for Schedule Import.
Provides REST endpoints for XER uploads and schedule reads.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from schedule_app.api.v1 import api_router as v1_router
from schedule_app.domain.exceptions import DomainError
from schedule_app.models import init_db

logger = logging.getLogger(__name__)

# Error code -> HTTP status; anything unlisted is a bad request
ERROR_STATUS = {
    "PROJECT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "SCHEDULE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "DUPLICATE_PROJECT": status.HTTP_409_CONFLICT,
    "CYCLIC_DEPENDENCY": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "PERSISTENCE_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
}

app = FastAPI(
    title="Schedule Import API",
    description="Primavera P6 XER import with critical-path and progress analysis",
    version="1.0.0",
)
app.include_router(v1_router)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    status_code = ERROR_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST)
    body = {"error": exc.message, "code": exc.code}
    if exc.details:
        body["details"] = exc.details
    return JSONResponse(status_code=status_code, content=body)


@app.on_event("startup")
def startup():
    """Create tables on startup."""
    init_db()
    logger.info("Schedule Import API started")


@app.get("/health")
def health():
    return {"status": "ok"}
