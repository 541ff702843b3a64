from dataclasses import dataclass, field
from enum import Enum

# Serialized request body, immutable once produced
Payload = bytes

PERCENTILES: tuple[int, ...] = (50, 80, 90, 95, 99, 100)


class OutputMode(str, Enum):
    NORMAL = "normal"
    VERBOSE = "verbose"
    SILENT = "silent"


@dataclass(frozen=True)
class Outcome:
    body: str
    success: bool
    latency: float  # seconds
    worker_id: int = -1


@dataclass(frozen=True)
class Stage:
    request_count: int
    concurrency: int
    # None follows the payload source default
    noise: bool | None = None

    def __post_init__(self):
        if self.request_count < 1 or self.concurrency < 1:
            raise ValueError(
                f"Stage needs positive request_count and concurrency, "
                f"got {self.request_count}:{self.concurrency}"
            )

    def __str__(self) -> str:
        text = f"{self.request_count} requests x {self.concurrency} clients"
        if self.noise is not None:
            text += ", noisy payloads" if self.noise else ", static payload"
        return text


Schedule = tuple[Stage, ...]


@dataclass
class StageResult:
    stage: Stage
    latencies: list[float]  # seconds, successful calls only
    failures: int
    elapsed_s: float


@dataclass
class Report:
    request_count: int
    failures: int
    min: float
    median: float
    max: float
    mean: float
    rps: float
    elapsed_s: float
    percentiles: dict[int, float] = field(default_factory=dict)

    @property
    def successes(self) -> int:
        return self.request_count - self.failures
