import asyncio

from fastapi import APIRouter, HTTPException

from secprobe.core.config import settings
from secprobe.core.engine import run_scan, scan_headers, scan_ssl
from secprobe.core.guard import ensure_safe_url
from secprobe.models.schemas import HeadersScanResult, ScanReport, ScanRequest, SslScanResult

router = APIRouter(prefix="/scan", tags=["scan"])


async def _within_deadline(coro):
    try:
        return await asyncio.wait_for(coro, timeout=settings.scan_deadline)
    except asyncio.TimeoutError:
        raise HTTPException(
            status_code=504, detail=f"Scan exceeded {settings.scan_deadline:g}s deadline"
        )


@router.post("", response_model=ScanReport)
async def start_scan(req: ScanRequest):
    url = ensure_safe_url(str(req.url))
    return await _within_deadline(run_scan(url, req.options))


@router.post("/headers", response_model=HeadersScanResult)
async def headers_scan(req: ScanRequest):
    url = ensure_safe_url(str(req.url))
    return await _within_deadline(scan_headers(url))


@router.post("/ssl", response_model=SslScanResult)
async def ssl_scan(req: ScanRequest, strict: bool = False):
    """strict=true turns "no HTTPS" into a 502 instead of an F-graded result."""
    url = ensure_safe_url(str(req.url))
    return await _within_deadline(scan_ssl(url, strict=strict))
