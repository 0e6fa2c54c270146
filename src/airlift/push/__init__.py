"""airlift.push — Redistribution of bundle contents into a target cluster."""

from airlift.push.runner import CommandRunner, CommandResult
from airlift.push.engine import ContainerEngine, parse_load_output
from airlift.push.redistributor import (
    Redistributor, PushOutcome, PushReport, Tier,
    push_bundle, staged_bundle, manual_image_steps, manual_chart_steps,
)

__all__ = [
    "CommandRunner", "CommandResult",
    "ContainerEngine", "parse_load_output",
    "Redistributor", "PushOutcome", "PushReport", "Tier",
    "push_bundle", "staged_bundle", "manual_image_steps", "manual_chart_steps",
]
