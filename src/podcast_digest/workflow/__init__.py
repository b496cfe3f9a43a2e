"""Pipeline orchestration, progress events and their wire format."""

from .inflight import InFlightRegistry
from .orchestrator import PipelineOrchestrator
from .sinks import (
    CallbackProgressSink,
    FanOutProgressSink,
    JSONLProgressSink,
    LoggingProgressSink,
    NullProgressSink,
    ProgressSink,
    QueueProgressSink,
)
from .sse import SSE_CONTENT_TYPE, decode_status, encode_sse, iter_sse
from .status import STAGE_ORDER, STAGE_PROGRESS, ProcessingStatus, Stage, status_for

__all__ = [
    "CallbackProgressSink",
    "FanOutProgressSink",
    "InFlightRegistry",
    "JSONLProgressSink",
    "LoggingProgressSink",
    "NullProgressSink",
    "PipelineOrchestrator",
    "ProcessingStatus",
    "ProgressSink",
    "QueueProgressSink",
    "SSE_CONTENT_TYPE",
    "STAGE_ORDER",
    "STAGE_PROGRESS",
    "Stage",
    "decode_status",
    "encode_sse",
    "iter_sse",
    "status_for",
]
