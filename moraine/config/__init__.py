"""
Stack configuration for moraine.
"""

from moraine.config.stack import (
    StackConfig,
    StackConfigError,
    load_stack_file,
    parse_overrides,
)

__all__ = [
    "StackConfig",
    "StackConfigError",
    "load_stack_file",
    "parse_overrides",
]
