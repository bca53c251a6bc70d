"""Supervised backend process execution."""

from .environment import build_child_env
from .supervisor import (
    ProcessResult,
    ProcessState,
    ProcessSupervisor,
    check_command_success,
    collect_stdout,
    run_process,
)

__all__ = [
    "ProcessResult",
    "ProcessState",
    "ProcessSupervisor",
    "build_child_env",
    "check_command_success",
    "collect_stdout",
    "run_process",
]
