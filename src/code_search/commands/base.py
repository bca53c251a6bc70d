"""Base argument-vector builder shared by all backends."""

from typing import List, Tuple, Union


class BaseCommandBuilder:
    """Accumulates an argv vector for a single backend command.

    Builders never produce shell strings; ``build()`` returns the command and
    its argument list for direct execution.
    """

    def __init__(self, command: str):
        self.command = command
        self.args: List[str] = []

    def add_flag(self, flag: str) -> "BaseCommandBuilder":
        self.args.append(flag)
        return self

    def add_option(self, option: str, value: Union[str, int]) -> "BaseCommandBuilder":
        self.args.append(option)
        self.args.append(str(value))
        return self

    def add_arg(self, arg: str) -> "BaseCommandBuilder":
        self.args.append(arg)
        return self

    def reset(self) -> "BaseCommandBuilder":
        self.args = []
        return self

    def build(self) -> Tuple[str, List[str]]:
        """Return ``(command, args)`` with a copy of the accumulated arguments."""
        return self.command, list(self.args)
