"""FastAPI application for the InvoTrack POS integration service."""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from openai import APITimeoutError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from invotrack.auth import SupabaseClientProvider, current_user_id
from invotrack.config import InvoTrackConfig, get_config
from invotrack.dependencies import (
    AppResources,
    get_finalization_service,
    get_integration_manager,
    get_inventory_service,
    get_repository,
    get_scanner,
)
from invotrack.exceptions import ContractError
from invotrack.finalize_service import InvoiceFinalizationService
from invotrack.inventory_service import InventoryService
from invotrack.models import (
    FinalizeInvoiceRequest,
    FinalizeInvoiceResponse,
    OperationResult,
    PosConnectionConfig,
    PosSystemInfo,
    Product,
    ProductPushRequest,
    ScanInvoiceRequest,
    ScanResult,
    SyncRequest,
    SyncResult,
)
from invotrack.pos.http_client import HttpxVendorClient, VendorHttpClient
from invotrack.pos.manager import SYNC_TYPES, IntegrationManager
from invotrack.pos.token_cache import TokenCache
from invotrack.repositories.base import InvoTrackRepository
from invotrack.repositories.memory import InMemoryInvoTrackRepository
from invotrack.scanner import InvoiceScanner, ScanOutputError
from invotrack.storage import BlobStorage, InMemoryBlobStorage, SupabaseBlobStorage

logger = logging.getLogger(__name__)

SERVICE_VERSION = "1.0.0"

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["60/minute"],
    swallow_errors=True,
)

router = APIRouter()


def get_allowed_origins() -> list[str]:
    """Get allowed CORS origins from environment."""
    origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000")
    return [origin.strip() for origin in origins.split(",") if origin.strip()]


def _require_system(manager: IntegrationManager, system_id: str) -> None:
    if manager.get_adapter(system_id) is None:
        raise ContractError(
            "UNKNOWN_POS_SYSTEM",
            f"Unknown POS system: {system_id}",
            status_code=404,
            details={
                "system_id": system_id,
                "available": [s.system_id for s in manager.available_systems()],
            },
        )


def build_resources(
    config: InvoTrackConfig,
    *,
    repository: Optional[InvoTrackRepository] = None,
    blob_storage: Optional[BlobStorage] = None,
    vendor_http: Optional[VendorHttpClient] = None,
) -> AppResources:
    """Wire the app-scoped collaborators from config."""
    token_cache = TokenCache(
        lifetime_sec=config.token_lifetime_sec,
        safety_margin_sec=config.token_safety_margin_sec,
    )
    http = vendor_http or HttpxVendorClient(timeout=config.http_timeout_sec)
    supabase_provider = SupabaseClientProvider(config)
    if blob_storage is None:
        if supabase_provider.configured:
            blob_storage = SupabaseBlobStorage(
                supabase_provider.get_client, config.supabase_storage_bucket
            )
        else:
            logger.warning("Supabase is not configured; invoice images kept in memory")
            blob_storage = InMemoryBlobStorage()

    return AppResources(
        config=config,
        token_cache=token_cache,
        vendor_http=http,
        manager=IntegrationManager(http, token_cache, config),
        repository=repository or InMemoryInvoTrackRepository(),
        blob_storage=blob_storage,
        scanner=InvoiceScanner(config),
        supabase_client_provider=supabase_provider,
    )


def create_app(
    config: Optional[InvoTrackConfig] = None,
    *,
    repository: Optional[InvoTrackRepository] = None,
    blob_storage: Optional[BlobStorage] = None,
    vendor_http: Optional[VendorHttpClient] = None,
) -> FastAPI:
    """Create the FastAPI app; resources are built when the lifespan starts."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        resources = build_resources(
            config or get_config(),
            repository=repository,
            blob_storage=blob_storage,
            vendor_http=vendor_http,
        )
        app.state.invotrack_resources = resources
        try:
            yield
        finally:
            if isinstance(resources.vendor_http, HttpxVendorClient):
                await resources.vendor_http.aclose()
            app.state.invotrack_resources = None

    app = FastAPI(
        title="InvoTrack POS Integration Service",
        description="Invoice scanning, inventory and POS synchronization",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )
    app.state.limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ContractError, contract_error_handler)  # type: ignore[arg-type]
    app.include_router(router)
    return app


@router.get("/health")
@limiter.exempt
async def health_check() -> Dict[str, Any]:
    """Health check endpoint for container orchestration."""
    return {
        "status": "healthy",
        "service": "invotrack-pos",
        "version": SERVICE_VERSION,
    }


@router.get("/pos/systems", response_model=list[PosSystemInfo])
async def list_systems(
    user_id: str = Depends(current_user_id),
    manager: IntegrationManager = Depends(get_integration_manager),
) -> list[PosSystemInfo]:
    _ = user_id
    return manager.available_systems()


@router.get("/pos/systems/{system_id}/schema")
async def system_schema(
    system_id: str,
    user_id: str = Depends(current_user_id),
    manager: IntegrationManager = Depends(get_integration_manager),
) -> Dict[str, Any]:
    _ = user_id
    _require_system(manager, system_id)
    fields = manager.config_schema(system_id) or []
    return {
        "system_id": system_id,
        "fields": [f.model_dump() for f in fields],
        "document_types": manager.available_document_types(system_id),
    }


@router.post("/pos/test-connection", response_model=OperationResult)
@limiter.limit("10/minute")
async def pos_test_connection(
    request: Request,
    config: PosConnectionConfig,
    user_id: str = Depends(current_user_id),
    manager: IntegrationManager = Depends(get_integration_manager),
) -> OperationResult:
    _ = user_id
    _require_system(manager, config.system_id)
    return await manager.test_connection(config.system_id, config)


@router.get("/pos/settings")
async def get_pos_settings(
    user_id: str = Depends(current_user_id),
    repository: InvoTrackRepository = Depends(get_repository),
) -> Dict[str, Any]:
    config = repository.get_pos_settings(user_id)
    if config is None:
        raise ContractError(
            "POS_NOT_CONFIGURED",
            "No POS connection is configured for this user",
            status_code=404,
        )
    return config.model_dump(exclude={"pwd", "api_key"})


@router.put("/pos/settings")
async def save_pos_settings(
    config: PosConnectionConfig,
    user_id: str = Depends(current_user_id),
    manager: IntegrationManager = Depends(get_integration_manager),
    repository: InvoTrackRepository = Depends(get_repository),
) -> Dict[str, Any]:
    _require_system(manager, config.system_id)
    validation = manager.validate_config(config)
    if not validation.valid:
        raise ContractError(
            "INVALID_POS_CONFIG",
            "POS connection settings are incomplete",
            status_code=422,
            details={"errors": [e.model_dump() for e in validation.errors or []]},
        )
    repository.save_pos_settings(user_id, config)
    logger.info("Saved %s settings for user %s", config.system_id, user_id)
    return {"system_id": config.system_id, "saved": True}


@router.post("/pos/sync/{sync_type}", response_model=list[SyncResult])
@limiter.limit("5/minute")
async def sync_with_system(
    request: Request,
    sync_type: str,
    payload: SyncRequest,
    user_id: str = Depends(current_user_id),
    manager: IntegrationManager = Depends(get_integration_manager),
) -> list[SyncResult]:
    _ = user_id
    if sync_type != "all" and sync_type not in SYNC_TYPES:
        raise ContractError(
            "UNKNOWN_SYNC_TYPE",
            f"Unknown sync type: {sync_type}",
            details={"allowed": [*SYNC_TYPES, "all"]},
        )
    _require_system(manager, payload.config.system_id)
    return await manager.sync_with_system(
        payload.config.system_id, payload.config, sync_type
    )


@router.post("/pos/products", response_model=OperationResult)
@limiter.limit("30/minute")
async def push_product(
    request: Request,
    payload: ProductPushRequest,
    user_id: str = Depends(current_user_id),
    manager: IntegrationManager = Depends(get_integration_manager),
) -> OperationResult:
    _ = user_id
    _require_system(manager, payload.config.system_id)
    result = await manager.create_or_update_product(
        payload.config.system_id, payload.config, payload.product
    )
    if result.success:
        result.data = {**(result.data or {}), "product": payload.product.model_dump()}
    return result


@router.post("/pos/products/deactivate", response_model=OperationResult)
@limiter.limit("30/minute")
async def deactivate_product(
    request: Request,
    payload: ProductPushRequest,
    user_id: str = Depends(current_user_id),
    manager: IntegrationManager = Depends(get_integration_manager),
) -> OperationResult:
    _ = user_id
    _require_system(manager, payload.config.system_id)
    return await manager.deactivate_product(
        payload.config.system_id, payload.config, payload.product
    )


@router.post(
    "/invoices/scan",
    response_model=ScanResult,
    responses={
        401: {"description": "Invalid or expired token"},
        422: {"description": "Unprocessable scan output"},
        429: {"description": "Rate limit exceeded"},
        504: {"description": "Model request timed out"},
    },
)
@limiter.limit("10/minute")
async def scan_invoice(
    request: Request,
    payload: ScanInvoiceRequest,
    user_id: str = Depends(current_user_id),
    scanner: InvoiceScanner = Depends(get_scanner),
) -> ScanResult:
    _ = user_id
    if not payload.invoice_data_uri.startswith("data:"):
        raise ContractError(
            "INVALID_DATA_URI",
            "invoice_data_uri must be a data: URI",
        )
    try:
        return await run_in_threadpool(scanner.scan, payload.invoice_data_uri)
    except ScanOutputError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=str(e),
        )
    except APITimeoutError:
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail="Model request timed out. Please retry.",
        )
    except Exception as e:
        logger.exception("Invoice scan failed: %s", str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Invoice scan failed",
        )


@router.post("/invoices/finalize", response_model=FinalizeInvoiceResponse)
@limiter.limit("20/minute")
async def finalize_invoice(
    request: Request,
    payload: FinalizeInvoiceRequest,
    user_id: str = Depends(current_user_id),
    service: InvoiceFinalizationService = Depends(get_finalization_service),
) -> FinalizeInvoiceResponse:
    try:
        return await service.finalize(user_id, payload)
    except ContractError:
        raise
    except Exception as e:
        logger.exception("Invoice finalization failed: %s", str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Invoice finalization failed",
        )


@router.get("/inventory", response_model=list[Product])
async def list_inventory(
    user_id: str = Depends(current_user_id),
    repository: InvoTrackRepository = Depends(get_repository),
) -> list[Product]:
    return repository.list_products(user_id)


@router.post("/inventory/import", response_model=list[Product])
@limiter.limit("5/minute")
async def import_inventory(
    request: Request,
    user_id: str = Depends(current_user_id),
    service: InventoryService = Depends(get_inventory_service),
) -> list[Product]:
    return await service.import_from_pos(user_id)


@router.delete("/inventory/{product_id}", response_model=OperationResult)
async def delete_inventory_product(
    product_id: str,
    user_id: str = Depends(current_user_id),
    service: InventoryService = Depends(get_inventory_service),
) -> OperationResult:
    return await service.delete_product(user_id, product_id)


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """Rate limit exceeded handler."""
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Please try again later."},
    )


async def contract_error_handler(request: Request, exc: ContractError) -> JSONResponse:
    """Map domain contract errors to stable API error payload."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": exc.code,
                "message": exc.message,
                "details": exc.details,
            }
        },
    )


app = create_app()
