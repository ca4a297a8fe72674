# src/server.py
"""
Keyword Research Proxy API
Forwards related-keyword searches to DataForSEO Labs with server-held credentials

Key Features:
- POST /api/labs returns the upstream payload unchanged
- POST /keywords returns normalized, optionally sorted keyword records
- POST /export/csv streams the records as a CSV attachment
- Optional bearer key and per-IP rate limiting
"""

import os
import logging
import time
from typing import Any, Callable, Dict, Optional
from datetime import datetime
from urllib.parse import quote

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from dotenv import load_dotenv

import labs_client
from labs_client import LabsError, ConfigurationError, UpstreamLogicalError, RelatedKeywordsRequest
from normalizer import normalize_response
from postprocess import SORT_FIELDS, CSV_VARIANTS, sort_records, export_csv, csv_filename

# Load environment
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "Keyword Fusion API"
SERVICE_VERSION = "1.0.0"

# Initialize FastAPI
app = FastAPI(
    title=SERVICE_NAME,
    description="Related keyword research backed by DataForSEO Labs",
    version=SERVICE_VERSION,
    docs_url="/docs"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Configuration
API_AUTH_KEY = os.getenv("API_AUTH_KEY")

# Rate limiting
REQUEST_TIMES = {}
RATE_LIMIT_WINDOW = int(os.getenv("RATE_LIMIT_WINDOW", 60))
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", 30))

# Request counter for monitoring
API_CALL_COUNTER = {"total": 0, "failed": 0, "session_start": time.time()}


def count_api_call(failed: bool = False):
    """Track upstream usage."""
    API_CALL_COUNTER["total"] += 1
    if failed:
        API_CALL_COUNTER["failed"] += 1
    logger.info(f"Upstream call #{API_CALL_COUNTER['total']} - Session time: {time.time() - API_CALL_COUNTER['session_start']:.1f}s")


def check_rate_limit(client_ip: str) -> bool:
    """Rate limiting."""
    current_time = time.time()

    if client_ip not in REQUEST_TIMES:
        REQUEST_TIMES[client_ip] = []

    REQUEST_TIMES[client_ip] = [
        t for t in REQUEST_TIMES[client_ip]
        if current_time - t < RATE_LIMIT_WINDOW
    ]

    if len(REQUEST_TIMES[client_ip]) >= RATE_LIMIT_MAX_REQUESTS:
        return False

    REQUEST_TIMES[client_ip].append(current_time)
    return True


def guard_request(request: Request):
    """Authentication and rate limiting shared by every proxy endpoint."""
    if API_AUTH_KEY:
        auth = request.headers.get("Authorization", "").replace("Bearer ", "")
        if auth != API_AUTH_KEY:
            raise HTTPException(401, "Invalid or missing API key")

    client_ip = request.client.host if request.client else "unknown"
    if not check_rate_limit(client_ip):
        raise HTTPException(429, "Rate limit exceeded")


def error_envelope(status: int, message: str, http_status: int) -> JSONResponse:
    """Error body shaped like an empty upstream payload."""
    return JSONResponse(
        status_code=http_status,
        content={"status": status, "message": message, "tasks": []}
    )


def labs_error_response(error: LabsError) -> JSONResponse:
    if isinstance(error, ConfigurationError):
        return error_envelope(500, error.message, 500)
    if isinstance(error, UpstreamLogicalError):
        return error_envelope(error.status_code or 502, error.message, 502)
    # transport failures get a generic message
    return error_envelope(error.status_code or 502, LabsError.default_message, 502)


def counted_call(fetch: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    """Run one upstream call and keep the usage counter current."""
    try:
        payload = fetch()
    except ConfigurationError:
        raise
    except LabsError:
        count_api_call(failed=True)
        raise
    count_api_call()
    return payload


def fetch_payload(body: RelatedKeywordsRequest) -> Dict[str, Any]:
    return counted_call(lambda: labs_client.fetch_related_keywords(body))


@app.exception_handler(LabsError)
async def handle_labs_error(request: Request, exc: LabsError):
    logger.error(f"{request.url.path} failed: {type(exc).__name__}: {exc.message}")
    return labs_error_response(exc)


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException):
    logger.warning(f"{request.url.path} rejected: {exc.status_code} {exc.detail}")
    return error_envelope(exc.status_code, str(exc.detail), exc.status_code)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return error_envelope(422, "; ".join(messages) or "Invalid request", 422)


@app.on_event("startup")
async def startup():
    """Startup logging."""
    logger.info("=" * 60)
    logger.info(SERVICE_NAME)
    logger.info(f"Credentials configured: {credentials_configured()}")
    logger.info(f"Rate limit: {RATE_LIMIT_MAX_REQUESTS} requests / {RATE_LIMIT_WINDOW}s")
    logger.info("=" * 60)


def credentials_configured() -> bool:
    return bool(os.getenv("DATAFORSEO_LOGIN") and os.getenv("DATAFORSEO_PASSWORD"))


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "endpoints": {
            "/api/labs": "Related keywords, raw upstream payload (POST)",
            "/api/labs/menu": "Location and language options",
            "/api/serp": "Google organic SERP passthrough (POST)",
            "/keywords": "Normalized related keywords (POST)",
            "/export/csv": "Normalized related keywords as CSV (POST)",
            "/health": "Health check",
            "/stats": "Upstream usage statistics"
        }
    }


@app.get("/health")
async def health():
    """Health check."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "credentials_configured": credentials_configured(),
        "session_api_calls": API_CALL_COUNTER["total"]
    }


@app.get("/stats")
async def stats():
    """Upstream usage statistics."""
    uptime = time.time() - API_CALL_COUNTER["session_start"]
    return {
        "session_start": datetime.fromtimestamp(API_CALL_COUNTER["session_start"]).isoformat(),
        "uptime_seconds": round(uptime, 1),
        "total_api_calls": API_CALL_COUNTER["total"],
        "failed_api_calls": API_CALL_COUNTER["failed"]
    }


@app.post("/api/labs")
def related_keywords(body: RelatedKeywordsRequest, request: Request):
    """
    Related keywords proxy.

    Returns the upstream payload exactly as received. Failures come back as
    {status, message, tasks: []} with a non-2xx status.
    """
    guard_request(request)
    return fetch_payload(body)


@app.get("/api/labs/menu")
def labs_menu(request: Request):
    """Location and language options for the search form."""
    guard_request(request)
    try:
        return labs_client.fetch_menu_options()
    except ConfigurationError:
        raise
    except LabsError as e:
        logger.error(f"Error fetching locations and languages: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to fetch locations and languages"})


@app.post("/api/serp")
def serp(body: Dict[str, Any], request: Request):
    """Google organic SERP passthrough; the body is sent upstream as one task."""
    guard_request(request)
    client = labs_client.LabsClient(labs_client.Config.from_env())
    return counted_call(lambda: client.serp_organic(body))


def validate_sort(sort: Optional[str], direction: str):
    if sort is not None and sort not in SORT_FIELDS:
        raise HTTPException(400, f"Unknown sort field '{sort}'. Choose from: {', '.join(SORT_FIELDS)}")
    if direction not in ("asc", "desc"):
        raise HTTPException(400, "direction must be 'asc' or 'desc'")


@app.post("/keywords")
def keywords(
    body: RelatedKeywordsRequest,
    request: Request,
    sort: Optional[str] = Query(None, description="Sort field, upstream order when omitted"),
    direction: str = Query("desc", description="asc or desc")
):
    """Fetch, normalize and optionally sort related keywords."""
    start_time = time.time()
    guard_request(request)
    validate_sort(sort, direction)

    normalized = normalize_response(fetch_payload(body))
    records = normalized.data
    if sort:
        records = sort_records(records, sort, direction)

    processing_time = time.time() - start_time
    logger.info(f"SUCCESS: Returned {len(records)} keywords for '{body.keyword}' in {processing_time:.2f}s")

    return {
        "status": normalized.status,
        "message": normalized.message,
        "seed": body.keyword,
        "returned": len(records),
        "results": [record.to_dict() for record in records],
        "processing_time": round(processing_time, 2),
        "timestamp": datetime.utcnow().isoformat()
    }


@app.post("/export/csv")
def export_keywords_csv(
    body: RelatedKeywordsRequest,
    request: Request,
    sort: str = Query("searchVolume"),
    direction: str = Query("desc"),
    variant: str = Query("detailed")
):
    """Export normalized results as CSV."""
    guard_request(request)
    validate_sort(sort, direction)
    if variant not in CSV_VARIANTS:
        raise HTTPException(400, f"variant must be one of: {', '.join(CSV_VARIANTS)}")

    records = sort_records(normalize_response(fetch_payload(body)).data, sort, direction)
    filename = csv_filename(body.keyword)
    ascii_filename = filename.encode("ascii", "replace").decode("ascii").replace('"', "_")

    return StreamingResponse(
        iter([export_csv(records, variant)]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=\"{ascii_filename}\"; filename*=UTF-8''{quote(filename)}"}
    )


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    logger.info(f"Starting server on port {port}")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info"
    )
