"""Setup runs as ordered bootstrap steps.

Required steps propagate their errors and stop the run; optional steps are
logged and recorded as skipped. A step may return follow-up steps (usually
one per enabled provider), which run immediately after it and before the
rest of the sequence. Every step event carries the run's identity so
concurrent ``setup`` calls can be told apart in the log.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Iterable, Optional

from ...core.logging_utils import log_event

StepResult = Optional[Iterable["ChatBootstrapStep"]]
BootstrapAction = Callable[[], Awaitable[StepResult]]


@dataclass(frozen=True)
class SetupRun:
    run_id: int
    can_prompt_for_auth: bool = False
    forced_provider: Optional[str] = None

    def log_fields(self) -> dict[str, Any]:
        return {"run_id": self.run_id, "forced_provider": self.forced_provider}


@dataclass(frozen=True)
class ChatBootstrapStep:
    name: str
    action: BootstrapAction
    required: bool = True
    provider: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.name}:{self.provider}" if self.provider else self.name


@dataclass
class BootstrapReport:
    run: SetupRun
    completed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.skipped)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


async def run_chat_bootstrap_steps(
    *,
    run: SetupRun,
    logger: logging.Logger,
    steps: Iterable[ChatBootstrapStep],
    platform: str = "chat",
) -> BootstrapReport:
    """Run ``steps`` in order, expanding follow-ups in place."""

    report = BootstrapReport(run=run)
    pending: Deque[ChatBootstrapStep] = deque(steps)
    while pending:
        step = pending.popleft()
        started = time.monotonic()
        try:
            follow_ups = await step.action()
        except Exception as exc:
            log_event(
                logger,
                logging.ERROR if step.required else logging.WARNING,
                f"{platform}.bootstrap.step_failed",
                step=step.name,
                provider=step.provider,
                required=step.required,
                elapsed_ms=_elapsed_ms(started),
                exc=exc,
                **run.log_fields(),
            )
            if step.required:
                raise
            report.skipped.append(step.label)
            continue
        log_event(
            logger,
            logging.INFO,
            f"{platform}.bootstrap.step_ok",
            step=step.name,
            provider=step.provider,
            required=step.required,
            elapsed_ms=_elapsed_ms(started),
            **run.log_fields(),
        )
        report.completed.append(step.label)
        if follow_ups:
            pending.extendleft(reversed(list(follow_ups)))
    return report
