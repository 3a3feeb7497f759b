"""
Agent implementations.

- chat_agent.py: ChatAgent (respond / review / summarize) over an LLM client
- prompts.py: personas and prompt builders
- registry.py: AgentRegistry, lazy per-process agent cache
"""

from .chat_agent import AgentReply, ChatAgent, ChatAgentProtocol
from .registry import AgentRegistry
