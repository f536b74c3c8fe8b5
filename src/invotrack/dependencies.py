"""Shared FastAPI app resource container and provider dependencies."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, cast

from fastapi import Depends, HTTPException, Request, status

from invotrack.config import InvoTrackConfig
from invotrack.finalize_service import InvoiceFinalizationService
from invotrack.inventory_service import InventoryService
from invotrack.pos.http_client import VendorHttpClient
from invotrack.pos.manager import IntegrationManager
from invotrack.pos.token_cache import TokenCache
from invotrack.repositories.base import InvoTrackRepository
from invotrack.scanner import InvoiceScanner
from invotrack.storage import BlobStorage

if TYPE_CHECKING:
    from invotrack.auth import SupabaseClientProvider


@dataclass
class AppResources:
    """App-scoped resources initialized during FastAPI lifespan."""

    config: InvoTrackConfig
    token_cache: TokenCache
    vendor_http: VendorHttpClient
    manager: IntegrationManager
    repository: InvoTrackRepository
    blob_storage: BlobStorage
    scanner: InvoiceScanner
    supabase_client_provider: SupabaseClientProvider


def get_app_resources(request: Request) -> AppResources:
    """Return initialized app resources from state."""
    resources = getattr(request.app.state, "invotrack_resources", None)
    if resources is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Application resources are not initialized",
        )
    return cast(AppResources, resources)


def get_app_config(resources: AppResources = Depends(get_app_resources)) -> InvoTrackConfig:
    """Get app-scoped config instance."""
    return resources.config


def get_integration_manager(
    resources: AppResources = Depends(get_app_resources),
) -> IntegrationManager:
    return resources.manager


def get_repository(
    resources: AppResources = Depends(get_app_resources),
) -> InvoTrackRepository:
    return resources.repository


def get_scanner(resources: AppResources = Depends(get_app_resources)) -> InvoiceScanner:
    return resources.scanner


def get_finalization_service(
    resources: AppResources = Depends(get_app_resources),
) -> InvoiceFinalizationService:
    """Build a finalization service over the app-scoped collaborators."""
    return InvoiceFinalizationService(
        resources.repository, resources.manager, resources.blob_storage
    )


def get_inventory_service(
    resources: AppResources = Depends(get_app_resources),
) -> InventoryService:
    return InventoryService(resources.repository, resources.manager)


def get_supabase_client_provider(
    resources: AppResources = Depends(get_app_resources),
) -> "SupabaseClientProvider":
    """Get app-scoped Supabase client provider."""
    return resources.supabase_client_provider
