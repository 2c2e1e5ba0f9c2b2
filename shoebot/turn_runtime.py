from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger("shoebot.runtime")


@dataclass
class TurnStep:
    """Step descriptor for the turn runner."""
    name: str
    fn: Callable[[object], None]
    skip_if: Optional[Callable[[object], bool]] = None
    always_run: bool = False


class TurnRunner:
    """Runs the steps of one chat turn in a fixed order."""

    def __init__(self, steps: List[TurnStep]) -> None:
        self._steps = steps

    def run(self, context: object) -> None:
        """Purpose: Execute steps in order with optional skip/always-run rules.
        Inputs/Outputs: Input is a mutable context object; no return value.
        Side Effects / State: Invokes step functions that may mutate context.
        Dependencies: Depends on TurnStep.fn and TurnStep.skip_if semantics.
        Failure Modes: An exception in a step stops the run, so later steps
            (including always_run ones) do not execute.
        If Removed: The orchestrator cannot run a turn.
        Testing Notes: Verify skip_if and always_run logic with simple steps.
        """
        # Iterate steps and honor always_run/skip_if guards.
        for step in self._steps:
            if not step.always_run and step.skip_if and step.skip_if(context):
                continue
            started = time.perf_counter()
            step.fn(context)
            logger.debug("step=%s elapsed_ms=%.1f", step.name, (time.perf_counter() - started) * 1000)
