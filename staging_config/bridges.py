"""
Config -> Kernel Bridges.

Functions that turn StagingSettings into kernel objects.  They live in
staging_config because the kernel must NEVER import staging_config.

Usage:
    from staging_config import get_active_settings
    from staging_config.bridges import build_facade

    settings = get_active_settings()
    facade = build_facade(settings)
"""

from __future__ import annotations

from staging_config.schema import StagingSettings
from staging_kernel.db.pool import StorePool
from staging_kernel.services.import_procedure import ImportProcedure, StoredImportProcedure
from staging_kernel.services.invoice_facade import InvoiceFacade


def build_store_pool(settings: StagingSettings) -> StorePool:
    """Build the (uninitialised) StorePool from database and pool settings."""
    db = settings.database
    pool = settings.pool
    return StorePool(
        db.resolved_url(),
        pool_min=pool.pool_min,
        pool_max=pool.pool_max,
        pool_increment=pool.pool_increment,
        pool_timeout=pool.pool_timeout,
        pool_pre_ping=pool.pool_pre_ping,
        echo=db.echo,
        oracle_client_lib_dir=db.oracle_client_lib_dir,
    )


def build_import_procedure(settings: StagingSettings) -> StoredImportProcedure:
    """Build the PL/SQL import procedure from procedure settings."""
    proc = settings.procedure
    return StoredImportProcedure(
        proc.name,
        apps_user_id=proc.apps_user_id,
        apps_resp_id=proc.apps_resp_id,
        apps_resp_appl_id=proc.apps_resp_appl_id,
        staging_id_param=proc.staging_id_param,
        request_id_param=proc.request_id_param,
    )


def build_facade(
    settings: StagingSettings,
    *,
    pool: StorePool | None = None,
    procedure: ImportProcedure | None = None,
) -> InvoiceFacade:
    """
    Build the InvoiceFacade.

    ``pool`` and ``procedure`` override the settings-derived ones (tests
    pass an in-memory pool and a fake procedure).
    """
    defaults = settings.defaults
    return InvoiceFacade(
        pool if pool is not None else build_store_pool(settings),
        procedure if procedure is not None else build_import_procedure(settings),
        invoice_type=defaults.invoice_type,
        currency_code=defaults.currency_code,
        cancel_message=defaults.cancel_message,
        user_id=defaults.created_by,
    )
