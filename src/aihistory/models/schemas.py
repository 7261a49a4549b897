"""PyArrow schemas for Parquet storage."""
from __future__ import annotations

import pyarrow as pa


ENTRY_SCHEMA = pa.schema([
    ('entry_type', pa.string()),
    ('content', pa.string()),
    ('timestamp', pa.timestamp('ms', tz='UTC')),
    ('project_path', pa.string()),
    ('session_id', pa.string()),
    ('role', pa.string()),
    ('project_id', pa.string()),
])

# Key in the Parquet schema metadata that ties a blob to its metadata document.
METADATA_DIGEST_KEY = b"aihistory.metadata_digest"
