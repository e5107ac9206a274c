"""
GH Archive Importer - Importer Module
Imports hourly GitHub event archives from data.gharchive.org.
"""

from importer.archive_fetcher import (
    ArchiveFetcher,
    ArchiveWindow,
    FetchFailure,
    DecompressionError
)
from importer.event_classifier import GitHubEventType, classify, valid_event_types
from importer.record_projector import (
    ActorTuple,
    RepoTuple,
    EventTuple,
    ProjectedRecord,
    MalformedRecordError,
    project_record
)
from importer.batch_accumulator import Batch, BatchAccumulator
from importer.import_pipeline import ImportPipeline, ImportProgress, ImportResult, PipelineState

__all__ = [
    # Archive Fetcher
    "ArchiveFetcher",
    "ArchiveWindow",
    "FetchFailure",
    "DecompressionError",
    # Event Classifier
    "GitHubEventType",
    "classify",
    "valid_event_types",
    # Record Projector
    "ActorTuple",
    "RepoTuple",
    "EventTuple",
    "ProjectedRecord",
    "MalformedRecordError",
    "project_record",
    # Batch Accumulator
    "Batch",
    "BatchAccumulator",
    # Import Pipeline
    "ImportPipeline",
    "ImportProgress",
    "ImportResult",
    "PipelineState",
]
