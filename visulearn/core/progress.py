from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Tuple


class BatchStatus(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ProgressSnapshot:
    """Immutable view of a batch, handed to listeners after every unit."""
    status: BatchStatus
    completed: int
    total: int
    images_succeeded: int = 0
    audio_succeeded: int = 0
    units: Tuple[Dict[str, Any], ...] = field(default_factory=tuple)

    @property
    def fraction(self) -> float:
        if self.total == 0:
            return 1.0
        return self.completed / self.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "completed": self.completed,
            "total": self.total,
            "images_succeeded": self.images_succeeded,
            "audio_succeeded": self.audio_succeeded,
            "units": list(self.units),
        }


ProgressListener = Callable[[ProgressSnapshot], None]


class BatchProgress:
    """
    Progress counter owned by a single batch run.

    ``completed`` only moves forward, one unit at a time, and reaches
    ``total`` exactly once.
    """

    def __init__(self, total: int):
        if total < 0:
            raise ValueError("total must be >= 0")
        self.total = total
        self.completed = 0
        self.images_succeeded = 0
        self.audio_succeeded = 0
        self.status = BatchStatus.NOT_STARTED

    def start(self) -> None:
        if self.status is not BatchStatus.NOT_STARTED:
            raise ValueError(f"cannot start a batch that is {self.status.value}")
        self.status = BatchStatus.RUNNING

    def advance(self, image_ok: bool = False, audio_ok: bool = False) -> None:
        """Count one processed unit, whatever the outcome of its sub-tasks."""
        if self.status is not BatchStatus.RUNNING:
            raise ValueError(f"cannot advance a batch that is {self.status.value}")
        if self.completed >= self.total:
            raise ValueError("all units already counted")
        self.completed += 1
        if image_ok:
            self.images_succeeded += 1
        if audio_ok:
            self.audio_succeeded += 1

    def finish(self) -> None:
        if self.status is not BatchStatus.RUNNING:
            raise ValueError(f"cannot finish a batch that is {self.status.value}")
        if self.completed != self.total:
            raise ValueError(f"batch finished at {self.completed}/{self.total}")
        self.status = BatchStatus.COMPLETED

    def snapshot(self, units: Tuple[Dict[str, Any], ...] = ()) -> ProgressSnapshot:
        return ProgressSnapshot(
            status=self.status,
            completed=self.completed,
            total=self.total,
            images_succeeded=self.images_succeeded,
            audio_succeeded=self.audio_succeeded,
            units=tuple(units),
        )
