from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class LoopStatsModel(BaseModel):
    iterations: int = 0
    emissions: int = 0
    skipped_frames: int = 0
    failures: int = 0


class SessionStateResponse(BaseModel):
    state: str = Field(..., description="idle or predicting")
    current_word: Optional[str] = None
    previous_prediction: Optional[int] = None
    words: List[str]
    example_counts: Dict[str, int] = Field(default_factory=dict)
    camera_available: bool
    classifier_ready: bool
    camera_error: Optional[str] = None
    classifier_error: Optional[str] = None
    stats: LoopStatsModel = Field(default_factory=LoopStatsModel)


class ExampleRecordedResponse(BaseModel):
    class_index: int
    word: str
    example_count: int


class ToggleResponse(BaseModel):
    state: str


class StopResponse(BaseModel):
    state: str
    stopped: bool = Field(..., description="False when the loop was already idle")


class LogLinesResponse(BaseModel):
    lines: List[str] = Field(default_factory=list)


__all__ = [
    "ExampleRecordedResponse",
    "LogLinesResponse",
    "LoopStatsModel",
    "SessionStateResponse",
    "StopResponse",
    "ToggleResponse",
]
