"""
Ingest module - Turning activity files and API payloads into canonical activities.

This module provides:
- FIT and GPX decoders producing FileRecords
- Unit and vocabulary normalization
- Source adapters converting records into CanonicalActivity
"""
from fitdash.services.ingest.adapter import (
    FileAdapter,
    RawDataAdapter,
    StravaAdapter,
    get_adapter,
    normalize_record,
)
from fitdash.services.ingest.canonical import (
    ActivityCategory,
    BestEffort,
    CanonicalActivity,
    Lap,
    Point,
    Provenance,
    RunningSubType,
    Split,
    WorkoutAnalysis,
    WorkoutType,
)
from fitdash.services.ingest.records import ApiRecord, FileRecord, SourceRecord
from fitdash.services.ingest.uploads import SUPPORTED_EXTENSIONS, decode_upload

__all__ = [
    # Canonical types
    "ActivityCategory",
    "BestEffort",
    "CanonicalActivity",
    "Lap",
    "Point",
    "Provenance",
    "RunningSubType",
    "Split",
    "WorkoutAnalysis",
    "WorkoutType",
    # Source records
    "ApiRecord",
    "FileRecord",
    "SourceRecord",
    # Adapters
    "RawDataAdapter",
    "FileAdapter",
    "StravaAdapter",
    "get_adapter",
    "normalize_record",
    # Uploads
    "SUPPORTED_EXTENSIONS",
    "decode_upload",
]
