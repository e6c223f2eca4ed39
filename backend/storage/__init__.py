# storage/__init__.py
# ============================================================================
# ASTA EDUCATION BACKEND - STORAGE MODULE
# ============================================================================
# Record store, spreadsheet export mirror and external media host
# ============================================================================

from storage.record_store import (
    IRecordStore,
    IRecordTransaction,
    PostgresRecordStore,
    InMemoryRecordStore,
)

from storage.export_mirror import (
    ExportMirror,
    format_local_timestamp,
)

from storage.media_host import (
    IMediaHost,
    S3MediaHost,
    InMemoryMediaHost,
    StoredAsset,
)

__all__ = [
    # Record store
    "IRecordStore",
    "IRecordTransaction",
    "PostgresRecordStore",
    "InMemoryRecordStore",
    # Export mirror
    "ExportMirror",
    "format_local_timestamp",
    # Media host
    "IMediaHost",
    "S3MediaHost",
    "InMemoryMediaHost",
    "StoredAsset",
]
