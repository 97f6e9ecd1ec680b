"""In-memory registry of batch jobs and their latest progress snapshot."""
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from visulearn.core.config import settings
from visulearn.core.logger import log_batch_event
from visulearn.core.progress import BatchStatus, ProgressSnapshot


@dataclass
class Job:
    id: str
    kind: str  # "story" | "comic"
    snapshot: ProgressSnapshot
    title: Optional[str] = None
    error: Optional[str] = None
    finished_at: Optional[float] = None  # registry clock, set on completion or failure

    @property
    def finished(self) -> bool:
        return self.finished_at is not None

    def to_dict(self) -> dict:
        data = {"job_id": self.id, "kind": self.kind, "title": self.title, **self.snapshot.to_dict()}
        if self.error:
            data["error"] = self.error
        return data


class JobRegistry:
    """
    Stores the snapshots published by running batches. Nothing is persisted:
    jobs disappear with the process.

    Snapshots carry every generated image and audio clip, so the registry is
    bounded: finished jobs are dropped ``ttl_seconds`` after they finish, and
    when more than ``max_jobs`` are held the oldest ones go first, finished
    jobs before running ones.
    """

    def __init__(
        self,
        max_jobs: Optional[int] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_jobs = max_jobs if max_jobs is not None else settings.JOB_MAX_RETAINED
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.JOB_TTL_SECONDS
        if self.max_jobs < 1:
            raise ValueError("max_jobs must be >= 1")
        self._clock = clock
        self._jobs: "OrderedDict[str, Job]" = OrderedDict()

    def create(self, kind: str, total: int, title: Optional[str] = None) -> Job:
        job_id = str(uuid.uuid4())
        snapshot = ProgressSnapshot(status=BatchStatus.NOT_STARTED, completed=0, total=total)
        job = Job(id=job_id, kind=kind, snapshot=snapshot, title=title)
        self._jobs[job_id] = job
        log_batch_event(job_id, "created", f"{kind}, {total} unit(s)")
        self._prune()
        return job

    def get(self, job_id: str) -> Optional[Job]:
        self._prune()
        return self._jobs.get(job_id)

    def listener(self, job_id: str):
        """Progress listener that records snapshots for ``job_id``."""
        def record(snapshot: ProgressSnapshot) -> None:
            job = self._jobs.get(job_id)
            if job is None:
                # evicted while still running
                return
            if snapshot.completed < job.snapshot.completed:
                raise ValueError("progress went backwards")
            job.snapshot = snapshot
            if snapshot.status is BatchStatus.COMPLETED:
                job.finished_at = self._clock()
                log_batch_event(job_id, "completed", f"{snapshot.images_succeeded} image(s), {snapshot.audio_succeeded} audio")
        return record

    def fail(self, job_id: str, error: str) -> None:
        job = self._jobs.get(job_id)
        if job is not None:
            job.error = error
            job.finished_at = self._clock()
        log_batch_event(job_id, "failed", error)

    def _evict(self, job_id: str, reason: str) -> None:
        del self._jobs[job_id]
        log_batch_event(job_id, "evicted", reason)

    def _prune(self) -> None:
        now = self._clock()
        for job in list(self._jobs.values()):
            if job.finished and now - job.finished_at >= self.ttl_seconds:
                self._evict(job.id, "expired")

        while len(self._jobs) > self.max_jobs:
            oldest = next((j for j in self._jobs.values() if j.finished), None)
            if oldest is None:
                oldest = next(iter(self._jobs.values()))
            self._evict(oldest.id, "registry full")

    def __len__(self) -> int:
        return len(self._jobs)
