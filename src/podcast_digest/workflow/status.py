"""Pipeline stages and the progress event model.

``ProcessingStatus`` serializes with camelCase field names and stage tokens
``downloading`` ... ``generating-speech``, ``complete``, ``error``. A status
decoded with an unknown stage token becomes an error status instead of being
dropped.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .. import config_constants


class Stage(str, Enum):
    DOWNLOADING = "downloading"
    DOWNLOADED = "downloaded"
    TRANSCRIBING = "transcribing"
    TRANSCRIBED = "transcribed"
    SUMMARIZING = "summarizing"
    SUMMARIZED = "summarized"
    GENERATING_SPEECH = "generating-speech"
    COMPLETE = "complete"
    ERROR = "error"

    @classmethod
    def parse(cls, token: Any) -> "Stage":
        """Map a wire token to a Stage; anything unrecognised maps to ERROR."""
        if isinstance(token, Stage):
            return token
        try:
            return cls(str(token).strip().lower())
        except ValueError:
            return cls.ERROR

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.COMPLETE, Stage.ERROR)


STAGE_PROGRESS: Dict[Stage, int] = {
    Stage.DOWNLOADING: config_constants.PROGRESS_DOWNLOADING,
    Stage.DOWNLOADED: config_constants.PROGRESS_DOWNLOADED,
    Stage.TRANSCRIBING: config_constants.PROGRESS_TRANSCRIBING,
    Stage.TRANSCRIBED: config_constants.PROGRESS_TRANSCRIBED,
    Stage.SUMMARIZING: config_constants.PROGRESS_SUMMARIZING,
    Stage.SUMMARIZED: config_constants.PROGRESS_SUMMARIZED,
    Stage.GENERATING_SPEECH: config_constants.PROGRESS_GENERATING_SPEECH,
    Stage.COMPLETE: config_constants.PROGRESS_COMPLETE,
    Stage.ERROR: config_constants.PROGRESS_ERROR,
}

STAGE_ORDER = tuple(stage for stage in Stage if stage is not Stage.ERROR)


class ProcessingStatus(BaseModel):
    """One progress event.

    Attributes:
        stage: Pipeline stage the event reports.
        message: Human-readable description.
        progress_percent: Fixed marker for the stage (0 for errors).
        is_complete: True only on the complete event.
        is_error: True only on the error event.
        error_detail: Redacted failure message on error.
        episode_key: Cache key of the run.
        was_cached: Whether the source audio came from the cache.
        transcript_word_count: Set from the transcribed stage on.
        summary_word_count: Set from the summarized stage on.
        summary_text: Trimmed summary text.
        summary_artifact_path: Locator of the summary audio.
        elapsed: Seconds since the run started.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    stage: Stage
    message: str = ""
    progress_percent: int = Field(default=0, ge=0, le=100)
    is_complete: bool = False
    is_error: bool = False
    error_detail: Optional[str] = None
    episode_key: Optional[str] = None
    was_cached: Optional[bool] = None
    transcript_word_count: Optional[int] = None
    summary_word_count: Optional[int] = None
    summary_text: Optional[str] = None
    summary_artifact_path: Optional[str] = None
    elapsed: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def _coerce_stage(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "stage" not in data:
            return data
        raw = data["stage"]
        stage = Stage.parse(raw)
        data = dict(data)
        data["stage"] = stage
        raw_token = raw.value if isinstance(raw, Stage) else str(raw).strip().lower()
        if stage is Stage.ERROR:
            data.pop("is_error", None)
            data["isError"] = True
            if raw_token != Stage.ERROR.value:
                detail = data.pop("error_detail", None) or data.get("errorDetail")
                data["errorDetail"] = detail or f"Unrecognized stage: {raw}"
        elif stage is Stage.COMPLETE:
            data.pop("is_complete", None)
            data["isComplete"] = True
        return data

    @property
    def is_terminal(self) -> bool:
        return self.stage.is_terminal

    def to_wire(self) -> Dict[str, Any]:
        """Return the camelCase dict sent to remote callers."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


def status_for(stage: Stage, message: str, **payload: Any) -> ProcessingStatus:
    """Build a status with the stage's fixed progress marker and terminal flags."""
    return ProcessingStatus(
        stage=stage,
        message=message,
        progress_percent=STAGE_PROGRESS[stage],
        is_complete=stage is Stage.COMPLETE,
        is_error=stage is Stage.ERROR,
        **payload,
    )
