"""
LLM Client -- provider-agnostic wrapper for Anthropic, OpenAI and Google.

Usage:
    from conductor.llm import AgentPrompt, create_client

    client = create_client(provider="openai")
    response = await client.call(AgentPrompt(user_message="Review this"))
    print(response.content, response.usage.to_dict())
"""

from .client import AgentPrompt, LLMClient, LLMResponse, TokenUsage, Turn, create_client
