"""Client components: transport, session, resolver and transfer engine.

This module re-exports the public API of the client package.
"""

from wingusync.client.cache import CacheEntry, CacheStore
from wingusync.client.connection import Connection
from wingusync.client.engine import TransferEngine, quote_last_segment
from wingusync.client.errors import (
    AuthFailure,
    MalformedResponse,
    NetworkFailure,
    SyncError,
    TransferFailure,
    UnknownFailure,
    UserCancelled,
)
from wingusync.client.monitor import (
    CancellableMonitor,
    MonitoredReader,
    MonitoredWriter,
    ProgressMonitor,
    TransferCancelled,
)
from wingusync.client.multipart import MultipartUpload
from wingusync.client.resolver import Resolver
from wingusync.client.retry import retry
from wingusync.client.session import Session
from wingusync.client.transfers import Transfer, TransferState, TransferType
from wingusync.client.transport import Transport

__all__ = [
    # Connection
    "Connection",
    "Transport",
    "Session",
    "Resolver",
    "TransferEngine",
    "quote_last_segment",
    # Cache
    "CacheEntry",
    "CacheStore",
    # Monitoring
    "ProgressMonitor",
    "CancellableMonitor",
    "MonitoredReader",
    "MonitoredWriter",
    "TransferCancelled",
    "MultipartUpload",
    # Transfers
    "Transfer",
    "TransferState",
    "TransferType",
    "retry",
    # Errors
    "SyncError",
    "NetworkFailure",
    "AuthFailure",
    "MalformedResponse",
    "UserCancelled",
    "TransferFailure",
    "UnknownFailure",
]
