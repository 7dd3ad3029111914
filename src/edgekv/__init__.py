"""edgekv - A client for remote key-value stores."""

from edgekv.client import Client
from edgekv.config import ClientConfig
from edgekv.exceptions import (
    CassetteError,
    ConfigError,
    DecodeError,
    EdgeKVError,
    FieldError,
    NotFoundError,
    ServiceError,
    TransportError,
)
from edgekv.models import (
    BatchModifyKVStoreKeyInput,
    Consistency,
    CreateKVStoreInput,
    DeleteKVStoreInput,
    DeleteKVStoreKeyInput,
    GetKVStoreInput,
    GetKVStoreKeyInput,
    InsertKVStoreKeyInput,
    KVStore,
    ListKVStoreKeysInput,
    ListKVStoreKeysResponse,
    ListKVStoresInput,
    ListKVStoresResponse,
    ListMeta,
)
from edgekv.observability import (
    LogLevel,
    RequestContext,
    StructuredLogger,
    configure_logging,
    get_logger,
)
from edgekv.pagination import ListKVStoreKeysPaginator, PaginatorState

__version__ = "0.1.0"
__all__ = [
    # Client
    "Client",
    "ClientConfig",
    "ListKVStoreKeysPaginator",
    "PaginatorState",
    # Models
    "BatchModifyKVStoreKeyInput",
    "Consistency",
    "CreateKVStoreInput",
    "DeleteKVStoreInput",
    "DeleteKVStoreKeyInput",
    "GetKVStoreInput",
    "GetKVStoreKeyInput",
    "InsertKVStoreKeyInput",
    "KVStore",
    "ListKVStoreKeysInput",
    "ListKVStoreKeysResponse",
    "ListKVStoresInput",
    "ListKVStoresResponse",
    "ListMeta",
    # Errors
    "CassetteError",
    "ConfigError",
    "DecodeError",
    "EdgeKVError",
    "FieldError",
    "NotFoundError",
    "ServiceError",
    "TransportError",
    # Observability
    "LogLevel",
    "RequestContext",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
]
