"""Idempotency guards for generation job updates.

Guards are keyed by ``job_id:generation_id`` and owned outside the polling
loop, so a restarted or remounted poller sharing the same guard state never
re-fires a start or re-applies a finished plan.
"""


def generation_key(job_id: str, generation_id: str | None) -> str:
    """Composite identity of one generation of a job."""
    return f"{job_id}:{generation_id or ''}"


class GenerationGuards:
    """Records which one-shot transitions each generation has already had."""

    def __init__(self) -> None:
        self._started: set[str] = set()
        self._drafted: set[str] = set()
        self._completed: set[str] = set()
        self._persisted: set[str] = set()

    @staticmethod
    def _claim(seen: set[str], key: str) -> bool:
        if key in seen:
            return False
        seen.add(key)
        return True

    def claim_start(self, job_id: str, generation_id: str | None) -> bool:
        """True the first time a generation is seen."""
        return self._claim(self._started, generation_key(job_id, generation_id))

    def claim_draft(self, job_id: str, generation_id: str | None) -> bool:
        """True for the first draft of a generation that has not completed."""
        key = generation_key(job_id, generation_id)
        if key in self._completed:
            return False
        return self._claim(self._drafted, key)

    def claim_completion(self, job_id: str, generation_id: str | None) -> bool:
        return self._claim(self._completed, generation_key(job_id, generation_id))

    def claim_persist(self, job_id: str, generation_id: str | None) -> bool:
        return self._claim(self._persisted, generation_key(job_id, generation_id))

    def release_persist(self, job_id: str, generation_id: str | None) -> None:
        """Let a later snapshot of the generation retry its write."""
        self._persisted.discard(generation_key(job_id, generation_id))

    def is_completed(self, job_id: str, generation_id: str | None) -> bool:
        return generation_key(job_id, generation_id) in self._completed

    def clear(self) -> None:
        self._started.clear()
        self._drafted.clear()
        self._completed.clear()
        self._persisted.clear()
