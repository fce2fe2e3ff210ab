# Clients subpackage - external API clients
from .anthropic import ClaudeResponse, call_claude, get_anthropic_client

__all__ = [
    "ClaudeResponse",
    "call_claude",
    "get_anthropic_client",
]
