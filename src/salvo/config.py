"""
Run configuration: schedule parsing, schedule files and environment defaults.

Every problem found here is a setup failure and surfaces as
ConfigurationError before the first stage starts.
"""

import json
import logging
import os
from dataclasses import dataclass

from pydantic import BaseModel, Field, ValidationError, model_validator

from .models import OutputMode, Schedule, Stage

logger = logging.getLogger(__name__)

DEFAULT_NUM_CLIENTS = 8
DEFAULT_NUM_REQUESTS = 100
DEFAULT_TIMEOUT_S = 60.0
DEFAULT_IMAGE = "example.jpg"

STAGE_PAYLOAD_MODES = {"noise": True, "static": False}


class ConfigurationError(Exception):
    """Invalid setup detected before any load is generated."""


class StageConfig(BaseModel):
    requests: int = Field(gt=0)
    concurrency: int = Field(gt=0)
    noise: bool | None = None


class ScheduleFile(BaseModel):
    stages: list[StageConfig]

    @model_validator(mode="after")
    def _not_empty(self):
        if not self.stages:
            raise ValueError("schedule must contain at least one stage")
        return self

    def to_schedule(self) -> Schedule:
        return tuple(Stage(s.requests, s.concurrency, s.noise) for s in self.stages)


@dataclass
class RunConfig:
    endpoint: str
    schedule: Schedule
    timeout_s: float = DEFAULT_TIMEOUT_S
    apikey: str | None = None
    image_path: str = DEFAULT_IMAGE
    noise: bool = False
    latency_log: str | None = None
    histogram: bool = False
    output_mode: OutputMode = OutputMode.NORMAL

    def __post_init__(self):
        if not self.endpoint:
            raise ConfigurationError("Provide an endpoint to shoot at!")
        if not self.timeout_s > 0:
            raise ConfigurationError(f"Timeout must be positive, got {self.timeout_s}")
        if not self.schedule:
            raise ConfigurationError("Schedule is empty")


def parse_schedule(text: str) -> Schedule:
    """
    Parse ``"100:8,200:16:noise"`` into stages of (requests, concurrency).

    An optional third field, ``noise`` or ``static``, overrides the payload
    mode for that stage only.
    """
    stages = []
    for chunk in text.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        fields = chunk.split(":")
        if len(fields) not in (2, 3):
            raise ConfigurationError(
                f"Invalid stage {chunk!r}: expected REQUESTS:CONCURRENCY[:noise|static]"
            )
        noise = None
        if len(fields) == 3:
            if fields[2] not in STAGE_PAYLOAD_MODES:
                raise ConfigurationError(
                    f"Invalid stage {chunk!r}: payload mode must be noise or static"
                )
            noise = STAGE_PAYLOAD_MODES[fields[2]]
        try:
            stages.append(Stage(int(fields[0]), int(fields[1]), noise))
        except ValueError as e:
            raise ConfigurationError(f"Invalid stage {chunk!r}: {e}") from e
    if not stages:
        raise ConfigurationError(f"Schedule {text!r} has no stages")
    logger.debug(f"Parsed schedule {text!r} into {len(stages)} stages")
    return tuple(stages)


def load_schedule_file(path: str) -> Schedule:
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read schedule file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Schedule file {path} is not valid JSON: {e}") from e

    try:
        schedule = ScheduleFile.model_validate(raw).to_schedule()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid schedule file {path}: {e}") from e
    logger.info(f"Loaded {len(schedule)} stages from {path}")
    return schedule


def resolve_schedule(
    schedule: str | None,
    schedule_file: str | None,
    num_requests: int,
    num_clients: int,
) -> Schedule:
    if schedule and schedule_file:
        raise ConfigurationError("Use either --schedule or --schedule-file, not both")
    if schedule_file:
        return load_schedule_file(schedule_file)
    if schedule:
        return parse_schedule(schedule)
    try:
        return (Stage(num_requests, num_clients),)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e


def env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"{name}={value!r} is not a number") from e
