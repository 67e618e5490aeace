from fastapi import FastAPI, Request, Query, Path, HTTPException, status, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from fastapi.security import APIKeyHeader
from typing import List, Optional
from datetime import datetime, timezone
import hmac
import logging

from api.models import (
    AddressListPatchRequest,
    BatchErrorResponse,
    ErrorResponse,
    HealthCheckResponse,
    StaticDNSBatchRequest,
)
from api.render import (
    render_address_list,
    render_address_lists,
    render_static_dns_entries,
    render_static_dns_entry,
)
from core.errors import (
    BatchError,
    ConflictError,
    NotFoundError,
    ProvisioningError,
    StorageError,
    StorageTimeoutError,
    ValidationError,
)
from core.models import AddressList, StaticDNSEntry
from core.service import ProvisioningService

log = logging.getLogger("API")

RSC_FORMAT = "rsc"
JSON_FORMAT = "json"
ACCEPTED_MEDIA_TYPES = ("*/*", "application/*", "application/json")

# Порядок важен: StorageTimeoutError наследует StorageError
ERROR_STATUS = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (StorageTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (StorageError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]

# Security: "Authorization: <access_key>:<secret_key>"
auth_header = APIKeyHeader(name="Authorization", auto_error=False)

app = FastAPI(
    title="MikroTik Provisioning API",
    description="Address lists and static DNS entries rendered as JSON or RouterOS scripts",
    version="1.0.0",
    docs_url="/docs",
    redoc_url=None,
)


def status_for(exc: Exception) -> int:
    for cls, code in ERROR_STATUS:
        if isinstance(exc, cls):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


# ============================================
# Dependencies
# ============================================

def get_service(request: Request) -> ProvisioningService:
    return request.app.state.service


def require_auth(request: Request, authorization: Optional[str] = Depends(auth_header)) -> str:
    """Checks the access/secret key pair against the configured users."""
    if not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing Authorization header")

    parts = authorization.split(":")
    if len(parts) != 2:
        log.warning("[AUTH FAIL] Malformed Authorization header")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid credentials")

    access_key, secret_key = (p.encode() for p in parts)
    for user in request.app.state.access_users:
        if hmac.compare_digest(user["access_key"].encode(), access_key) and \
                hmac.compare_digest(user["secret_key"].encode(), secret_key):
            return user["access_key"]

    log.warning(f"[AUTH FAIL] Unknown key pair for access key {parts[0]!r}")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid credentials")


def output_format(request: Request, fmt: Optional[str] = Query(None, alias="format")) -> str:
    """`?format=rsc` selects RouterOS script output, otherwise JSON is negotiated via Accept."""
    if fmt == RSC_FORMAT:
        return RSC_FORMAT
    if fmt is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid format parameter value: {fmt}")

    accept = request.headers.get("accept", "").strip().lower()
    if accept:
        media_types = [m.split(";")[0].strip() for m in accept.split(",")]
        if not any(m in ACCEPTED_MEDIA_TYPES for m in media_types):
            raise HTTPException(status_code=status.HTTP_406_NOT_ACCEPTABLE, detail="Not Acceptable")
    return JSON_FORMAT


def existing_address_list(
    address_list_name: str = Path(..., pattern=r"^[A-Za-z0-9-]+$"),
    service: ProvisioningService = Depends(get_service),
) -> AddressList:
    address_list = service.get_address_list_by_name(address_list_name)
    if address_list is None:
        raise NotFoundError(f"Address list not found: {address_list_name}")
    return address_list


def new_address_list(
    address_list: AddressList,
    service: ProvisioningService = Depends(get_service),
) -> AddressList:
    if service.get_address_list_by_name(address_list.name) is not None:
        log.warning(f"Address list '{address_list.name}' already exists")
        raise ConflictError(f"Address list already exists: {address_list.name}")
    return address_list


def existing_static_dns_entry(
    entry_name: str,
    service: ProvisioningService = Depends(get_service),
) -> StaticDNSEntry:
    entry = service.get_static_dns_entry_by_name(entry_name)
    if entry is None:
        raise NotFoundError(f"Static DNS entry not found: {entry_name}")
    return entry


def new_static_dns_entry(
    entry: StaticDNSEntry,
    service: ProvisioningService = Depends(get_service),
) -> StaticDNSEntry:
    if service.get_static_dns_entry_by_name(entry.name) is not None:
        log.warning(f"Static DNS entry '{entry.name}' already exists")
        raise ConflictError(f"Static DNS entry already exists: {entry.name}")
    return entry


def new_static_dns_batch(
    batch: StaticDNSBatchRequest,
    service: ProvisioningService = Depends(get_service),
) -> List[StaticDNSEntry]:
    names = [e.name for e in batch.entries]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConflictError(f"Duplicate names in batch: {', '.join(duplicates)}")
    existing = [n for n in names if service.get_static_dns_entry_by_name(n) is not None]
    if existing:
        raise ConflictError(f"Static DNS entries already exist: {', '.join(existing)}")
    return batch.entries


def existing_static_dns_batch(
    batch: StaticDNSBatchRequest,
    service: ProvisioningService = Depends(get_service),
) -> List[StaticDNSEntry]:
    missing = [e.name for e in batch.entries if service.get_static_dns_entry_by_name(e.name) is None]
    if missing:
        raise NotFoundError(f"Static DNS entries not found: {', '.join(missing)}")
    return batch.entries


ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# ============================================
# Address lists
# ============================================

@app.get("/address-list",
         response_model=List[AddressList],
         responses={406: {"model": ErrorResponse}})
def list_address_lists(fmt: str = Depends(output_format), service: ProvisioningService = Depends(get_service)):
    """All address lists, as JSON or as `/ip firewall address-list` commands."""
    results = service.get_address_lists()
    if fmt == RSC_FORMAT:
        return PlainTextResponse(render_address_lists(results))
    return results


@app.post("/address-list",
          response_model=AddressList,
          status_code=status.HTTP_201_CREATED,
          responses={**ERROR_RESPONSES, 409: {"model": ErrorResponse}})
def create_address_list(
    _: str = Depends(require_auth),
    address_list: AddressList = Depends(new_address_list),
    service: ProvisioningService = Depends(get_service),
):
    return service.create_address_list(address_list)


@app.get("/address-list/{address_list_name}",
         response_model=AddressList,
         responses={404: {"model": ErrorResponse}, 406: {"model": ErrorResponse}})
def get_address_list(
    address_list: AddressList = Depends(existing_address_list),
    fmt: str = Depends(output_format),
):
    if fmt == RSC_FORMAT:
        return PlainTextResponse(render_address_list(address_list))
    return address_list


@app.put("/address-list/{address_list_name}",
         response_model=AddressList,
         responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}})
def update_address_list(
    data: AddressList,
    _: str = Depends(require_auth),
    current: AddressList = Depends(existing_address_list),
    service: ProvisioningService = Depends(get_service),
):
    """Full replace of the list, its name included."""
    return service.update_address_list(current.id, data)


@app.patch("/address-list/{address_list_name}",
           response_model=AddressList,
           responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}})
def patch_address_list(
    patch: AddressListPatchRequest,
    _: str = Depends(require_auth),
    current: AddressList = Depends(existing_address_list),
    service: ProvisioningService = Depends(get_service),
):
    """
    Adds or removes addresses.

    - **add**: addresses already in the list are skipped
    - **remove**: addresses not in the list are ignored
    """
    return service.update_entries_in_address_list(patch.action, current.id, patch.addresses)


@app.delete("/address-list/{address_list_name}",
            status_code=status.HTTP_204_NO_CONTENT,
            responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}})
def delete_address_list(
    _: str = Depends(require_auth),
    current: AddressList = Depends(existing_address_list),
    service: ProvisioningService = Depends(get_service),
):
    service.delete_address_list(current.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================
# Static DNS
# ============================================

@app.get("/dns/static/list",
         response_model=List[StaticDNSEntry],
         responses={406: {"model": ErrorResponse}})
def list_static_dns_entries(fmt: str = Depends(output_format), service: ProvisioningService = Depends(get_service)):
    """All static DNS entries, as JSON or as `/ip dns static` commands."""
    results = service.get_static_dns_entries()
    if fmt == RSC_FORMAT:
        return PlainTextResponse(render_static_dns_entries(results))
    return results


@app.post("/dns/static/list",
          response_model=List[StaticDNSEntry],
          status_code=status.HTTP_201_CREATED,
          responses={**ERROR_RESPONSES, 409: {"model": BatchErrorResponse}})
def create_static_dns_entries(
    _: str = Depends(require_auth),
    entries: List[StaticDNSEntry] = Depends(new_static_dns_batch),
    service: ProvisioningService = Depends(get_service),
):
    return service.create_static_dns_entries(entries)


@app.put("/dns/static/list",
         response_model=List[StaticDNSEntry],
         responses={**ERROR_RESPONSES, 404: {"model": BatchErrorResponse}})
def update_static_dns_entries(
    _: str = Depends(require_auth),
    entries: List[StaticDNSEntry] = Depends(existing_static_dns_batch),
    service: ProvisioningService = Depends(get_service),
):
    """Replaces entries matched by name."""
    return service.update_static_dns_entries(entries)


@app.post("/dns/static",
          response_model=StaticDNSEntry,
          status_code=status.HTTP_201_CREATED,
          responses={**ERROR_RESPONSES, 409: {"model": ErrorResponse}})
def create_static_dns_entry(
    _: str = Depends(require_auth),
    entry: StaticDNSEntry = Depends(new_static_dns_entry),
    service: ProvisioningService = Depends(get_service),
):
    return service.create_static_dns_entry(entry)


@app.get("/dns/static/{entry_name}",
         response_model=StaticDNSEntry,
         responses={404: {"model": ErrorResponse}, 406: {"model": ErrorResponse}})
def get_static_dns_entry(
    entry: StaticDNSEntry = Depends(existing_static_dns_entry),
    fmt: str = Depends(output_format),
):
    if fmt == RSC_FORMAT:
        return PlainTextResponse(render_static_dns_entry(entry))
    return entry


@app.put("/dns/static/{entry_name}",
         response_model=StaticDNSEntry,
         responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}})
def update_static_dns_entry(
    data: StaticDNSEntry,
    _: str = Depends(require_auth),
    current: StaticDNSEntry = Depends(existing_static_dns_entry),
    service: ProvisioningService = Depends(get_service),
):
    return service.update_static_dns_entry(current.id, data)


@app.delete("/dns/static/{entry_name}",
            status_code=status.HTTP_204_NO_CONTENT,
            responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}})
def delete_static_dns_entry(
    _: str = Depends(require_auth),
    current: StaticDNSEntry = Depends(existing_static_dns_entry),
    service: ProvisioningService = Depends(get_service),
):
    service.delete_static_dns_entry(current.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/health",
         response_model=HealthCheckResponse,
         tags=["monitoring"],
         include_in_schema=False)
def health_check(request: Request):
    """Endpoint for infrastructure health checks (e.g., load balancer)"""
    components = {"api": "ok"}
    overall_status = "ok"

    service = getattr(request.app.state, "service", None)
    if service is None:
        components["storage"] = "error"
        overall_status = "degraded"
    else:
        components["storage"] = type(service.storage).__name__

    return HealthCheckResponse(
        status=overall_status,
        timestamp=datetime.now(timezone.utc),
        components=components
    )


# ============================================
# Error handlers
# ============================================

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"] if p != "body")
        problems.append(f"{loc}: {err['msg']}")
    log.info(f"Rejected request {request.method} {request.url.path}: {problems}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "; ".join(problems)},
    )


@app.exception_handler(BatchError)
async def batch_exception_handler(request: Request, exc: BatchError):
    code = status_for(exc.cause)
    if code >= 500:
        log.error(f"Batch {request.method} {request.url.path} failed at '{exc.failed}': {exc.cause}")
    body = BatchErrorResponse(
        detail=str(exc.cause),
        applied=exc.applied,
        failed=exc.failed,
        skipped=exc.skipped,
    )
    return JSONResponse(status_code=code, content=body.model_dump(mode="json"))


@app.exception_handler(ProvisioningError)
async def provisioning_exception_handler(request: Request, exc: ProvisioningError):
    code = status_for(exc)
    if code >= 500:
        log.error(f"Storage failure during {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=code, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    # Логируем полное исключение
    log.exception(f"Unhandled exception during request processing: {request.method} {request.url}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An unexpected internal server error occurred."},
    )
