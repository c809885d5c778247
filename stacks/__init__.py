from .agentcore_stack import (
    AgentCoreStack,
    must_new_stack_from_file,
    new_stack_from_file,
)
from .builder import AgentBuilder, StackBuilder

__all__ = [
    "AgentCoreStack",
    "AgentBuilder",
    "StackBuilder",
    "new_stack_from_file",
    "must_new_stack_from_file",
]
