"""Ordered step pipeline.

A Pipeline runs named steps in order. Each step yields a StepResult that is
either a success (with a value) or a failure (with the error); the pipeline
stops at the first failure. Steps marked mutating are skipped in dry-run mode.

Only azrestore errors are turned into failures. Anything else is a bug and
propagates.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from azrestore.exceptions import AzRestoreError

logger = logging.getLogger(__name__)


@dataclass
class StepResult:
    """Outcome of one pipeline step."""

    step: str
    ok: bool
    value: Any = None
    error: AzRestoreError | None = None
    skipped: bool = False

    @classmethod
    def success(cls, step: str, value: Any = None) -> "StepResult":
        return cls(step=step, ok=True, value=value)

    @classmethod
    def failure(cls, step: str, error: AzRestoreError) -> "StepResult":
        return cls(step=step, ok=False, error=error)

    @classmethod
    def skip(cls, step: str) -> "StepResult":
        return cls(step=step, ok=True, skipped=True)

    def __repr__(self) -> str:
        if self.skipped:
            return f"[SKIPPED] {self.step}"
        if self.ok:
            return f"[OK] {self.step}"
        return f"[FAILED] {self.step}: {self.error}"


@dataclass
class Step:
    """A named unit of work."""

    name: str
    action: Callable[[], Any]
    description: str = ""
    mutating: bool = False

    def run(self, dry_run: bool = False) -> StepResult:
        if dry_run and self.mutating:
            logger.info(f"[dry-run] Would {self.description or self.name}")
            return StepResult.skip(self.name)

        logger.info(f"==> {self.description or self.name}")
        try:
            return StepResult.success(self.name, self.action())
        except AzRestoreError as e:
            logger.error(f"Step '{self.name}' failed: {e}")
            return StepResult.failure(self.name, e)


@dataclass
class PipelineResult:
    """Results of every step that ran."""

    results: list[StepResult] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return all(r.ok for r in self.results)

    @property
    def failed_step(self) -> StepResult | None:
        return next((r for r in self.results if not r.ok), None)

    def get(self, step: str) -> StepResult | None:
        return next((r for r in self.results if r.step == step), None)


class Pipeline:
    """Run steps in order, halting on the first failure."""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        self.steps: list[Step] = []

    def add(
        self,
        name: str,
        action: Callable[[], Any],
        description: str = "",
        mutating: bool = False,
    ) -> "Pipeline":
        self.steps.append(Step(name, action, description, mutating))
        return self

    def run(self) -> PipelineResult:
        outcome = PipelineResult()
        for step in self.steps:
            result = step.run(self.dry_run)
            outcome.results.append(result)
            if not result.ok:
                break
        return outcome


__all__ = ["Pipeline", "PipelineResult", "Step", "StepResult"]
