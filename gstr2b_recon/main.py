import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gstr2b_recon.api import health, reconcile
from gstr2b_recon.core.config import settings
from gstr2b_recon.core.exceptions import (
    ReconciliationIntegrityError,
    ReportRenderingError,
    SheetFormatError,
)
from gstr2b_recon.core.middleware import AuditMiddleware

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)
app.add_middleware(AuditMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(reconcile.router, prefix=settings.API_PREFIX)


@app.exception_handler(SheetFormatError)
async def sheet_format_error_handler(request: Request, exc: SheetFormatError):
    logger.warning(f"Rejected upload on {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(ReconciliationIntegrityError)
async def integrity_error_handler(request: Request, exc: ReconciliationIntegrityError):
    logger.error(f"Reconciliation integrity failure on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Reconciliation failed an internal consistency check."})


@app.exception_handler(ReportRenderingError)
async def rendering_error_handler(request: Request, exc: ReportRenderingError):
    return JSONResponse(status_code=500, content={"detail": str(exc)})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
