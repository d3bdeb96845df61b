"""Per-stage status and timing for one pipeline run."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable

import structlog

log = structlog.get_logger("native_bindgen.progress")

StageCallback = Callable[["StageProgress"], None]


@dataclass
class StageProgress:
    stage: str
    status: str = "pending"  # "pending" | "running" | "completed" | "failed" | "skipped"
    start_time: float | None = None
    end_time: float | None = None
    detail: str = ""
    error: str | None = None

    @property
    def duration(self) -> float | None:
        if self.start_time is not None and self.end_time is not None:
            return round(self.end_time - self.start_time, 2)
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "status": self.status,
            "duration": self.duration,
            "detail": self.detail,
            "error": self.error,
        }


class ProgressTracker:
    """Record stage transitions in run order and fan them out to callbacks.

    A stage is entered with ``start_stage`` and left with exactly one of
    ``complete_stage``, ``fail_stage`` or ``skip_stage``. ``skip_stage`` also
    accepts a stage that never started (it is then recorded without timing).
    """

    def __init__(self, callbacks: list[StageCallback] | None = None) -> None:
        self.stages: list[StageProgress] = []
        self._by_name: dict[str, StageProgress] = {}
        self.callbacks: list[StageCallback] = list(callbacks or [])

    def start_stage(self, stage: str) -> None:
        p = StageProgress(stage=stage, status="running", start_time=time.monotonic())
        self._record(p)
        self._notify(p)

    def complete_stage(self, stage: str, detail: str = "") -> None:
        self._finish(stage, "completed", detail=detail)

    def fail_stage(self, stage: str, error: str) -> None:
        self._finish(stage, "failed", error=error)

    def skip_stage(self, stage: str, reason: str) -> None:
        if stage not in self._by_name:
            self._record(StageProgress(stage=stage))
        self._finish(stage, "skipped", detail=reason)

    def get(self, stage: str) -> StageProgress | None:
        return self._by_name.get(stage)

    def get_summary(self) -> dict[str, Any]:
        return {
            "stages": [p.to_dict() for p in self.stages],
            "total_duration": round(sum(p.duration or 0 for p in self.stages), 2),
        }

    def _record(self, p: StageProgress) -> None:
        self.stages.append(p)
        self._by_name[p.stage] = p

    def _finish(
        self, stage: str, status: str, detail: str = "", error: str | None = None
    ) -> None:
        p = self._by_name.get(stage)
        if p is None:
            log.debug("progress.unknown_stage", stage=stage, status=status)
            return
        p.status = status
        p.end_time = time.monotonic() if p.start_time is not None else None
        p.detail = detail or p.detail
        p.error = error
        self._notify(p)

    def _notify(self, p: StageProgress) -> None:
        for cb in self.callbacks:
            try:
                cb(p)
            except Exception:
                log.debug("progress.callback_error", stage=p.stage, exc_info=True)
