from agentloop.reasoning.base import Analysis, FollowUpContext, ReasoningClient
from agentloop.reasoning.client import BackendReasoningClient, extract_task_list, parse_analysis

__all__ = [
    "Analysis",
    "BackendReasoningClient",
    "FollowUpContext",
    "ReasoningClient",
    "extract_task_list",
    "parse_analysis",
]
