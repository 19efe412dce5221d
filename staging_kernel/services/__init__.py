"""Staging services: repository, lifecycle engine, import procedure, orchestrator, facade."""

from staging_kernel.services.import_procedure import ImportProcedure, StoredImportProcedure
from staging_kernel.services.invoice_facade import InvoiceFacade
from staging_kernel.services.lifecycle_engine import LifecycleEngine
from staging_kernel.services.processing_orchestrator import ProcessingOrchestrator
from staging_kernel.services.staging_repository import StagingRepository

__all__ = [
    "ImportProcedure",
    "InvoiceFacade",
    "LifecycleEngine",
    "ProcessingOrchestrator",
    "StagingRepository",
    "StoredImportProcedure",
]
