import time
from dataclasses import dataclass, field
from typing import Optional

CHECKPOINT_INTERVAL_SECONDS = 300


@dataclass
class RunState:
    """Per-user iteration bookkeeping. Never shared between users."""

    start_time: float = field(default_factory=time.time)
    iteration_count: int = 0
    error_count: int = 0
    last_checkpoint: Optional[float] = None
    checkpoint_interval: float = CHECKPOINT_INTERVAL_SECONDS

    def __post_init__(self):
        if self.last_checkpoint is None:
            self.last_checkpoint = self.start_time

    def record_iteration(self, success: bool = True) -> None:
        self.iteration_count += 1
        if not success:
            self.error_count += 1

    @property
    def error_rate(self) -> float:
        if not self.iteration_count:
            return 0.0
        return self.error_count / self.iteration_count

    def elapsed_minutes(self, now: float) -> float:
        return (now - self.start_time) / 60

    def due_checkpoint(self, now: float) -> bool:
        """True (and resets the timer) once per checkpoint interval."""
        if now - self.last_checkpoint < self.checkpoint_interval:
            return False
        self.last_checkpoint = now
        return True

    def checkpoint_message(self, now: float) -> str:
        return (
            f"Checkpoint: {self.elapsed_minutes(now):.1f}min elapsed, "
            f"{self.iteration_count} iterations, {self.error_rate * 100:.2f}% errors"
        )
