import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from secprobe.api.scan import router as scan_router
from secprobe.core.config import settings
from secprobe.core.errors import FetchError, InputError, ScanError, TlsError
from secprobe.core.logging_config import configure_logging

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="SecProbe API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS = {
    InputError: 400,
    FetchError: 502,
    TlsError: 502,
}


@app.exception_handler(ScanError)
async def scan_error_handler(request: Request, exc: ScanError):
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500)
    logger.warning("%s %s -> %s: %s", request.method, request.url.path, status, exc)
    return JSONResponse(
        status_code=status,
        content={"error": type(exc).__name__, "detail": exc.message, "url": exc.url},
    )


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(scan_router)
