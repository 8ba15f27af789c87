"""Ordered, resumable queue of crawl jobs."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Iterator


class JobKind(str, Enum):
    """Entity kinds the crawler knows how to process."""

    PRODUCT = "product"
    STORE = "store"


@dataclass(frozen=True, slots=True)
class Job:
    kind: JobKind
    id: int

    def as_pair(self) -> list[Any]:
        return [getattr(self.kind, "value", self.kind), self.id]


class JobQueue:
    """FIFO of pending jobs that serializes to a plain list of pairs."""

    def __init__(self, jobs: Iterable[Job] | None = None) -> None:
        self._jobs: deque[Job] = deque(jobs or ())

    def push(self, kind: JobKind | str, ids: Iterable[int]) -> int:
        kind = JobKind(kind)
        before = len(self._jobs)
        self._jobs.extend(Job(kind, int(entity_id)) for entity_id in ids)
        return len(self._jobs) - before

    def pop(self) -> Job | None:
        if not self._jobs:
            return None
        return self._jobs.popleft()

    def peek(self) -> Job | None:
        return self._jobs[0] if self._jobs else None

    def clear(self) -> None:
        self._jobs.clear()

    def count(self, kind: JobKind | str) -> int:
        kind = JobKind(kind)
        return sum(1 for job in self._jobs if job.kind is kind)

    def to_list(self) -> list[list[Any]]:
        return [job.as_pair() for job in self._jobs]

    @classmethod
    def from_list(cls, pairs: Iterable[Iterable[Any]]) -> "JobQueue":
        """Rebuild a queue from persisted pairs.

        Kinds are kept as raw strings when they are not known so that the
        orchestrator can report them as a population bug instead of failing
        while loading the session.
        """

        jobs = []
        for kind, entity_id in pairs:
            try:
                job_kind: Any = JobKind(kind)
            except ValueError:
                job_kind = kind
            jobs.append(Job(job_kind, int(entity_id)))
        return cls(jobs)

    def __len__(self) -> int:
        return len(self._jobs)

    def __bool__(self) -> bool:
        return bool(self._jobs)

    def __iter__(self) -> Iterator[Job]:
        return iter(list(self._jobs))


__all__ = ["Job", "JobKind", "JobQueue"]
