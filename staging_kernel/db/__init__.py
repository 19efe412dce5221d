"""Store layer - declarative base and the shared connection pool."""

from staging_kernel.db.base import Base, SurrogateKey
from staging_kernel.db.pool import StorePool

__all__ = [
    "Base",
    "SurrogateKey",
    "StorePool",
]
