"""
Clients Layer - Completion Client and Retry Orchestrator

Submodules:
    completion_client.py → Protocol, base class and Azure OpenAI implementation
    retry.py             → Bounded retry producing a parsed JSON object

Why Abstraction Layer:
    1. Generators depend on the protocol, not on the openai SDK
    2. Tests substitute a stub client without patching the network
    3. Retry policy lives in one place
"""

from medical_record_generation.clients.completion_client import (
    CompletionClientProtocol,
    BaseCompletionClient,
    AzureOpenAICompletionClient,
)
from medical_record_generation.clients.retry import (
    RetryOrchestrator,
    generate_structured,
    parse_json_object,
    strip_code_fence,
)

__all__ = [
    "CompletionClientProtocol",
    "BaseCompletionClient",
    "AzureOpenAICompletionClient",
    "RetryOrchestrator",
    "generate_structured",
    "parse_json_object",
    "strip_code_fence",
]
