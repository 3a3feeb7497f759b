"""
AgentRegistry -- lazily builds and caches one agent per agent id.

Agents are expensive to construct (SDK clients, connection pools) and are
stateless between calls, so each one is built on first use and then shared
by every concurrent run in the process. Construction is guarded by a
double-checked lock so two requests racing on a cold registry still build
each agent exactly once.

The registry is injected into the Orchestrator and the API app; nothing
reads it from a global.

Usage:
    registry = AgentRegistry(config)
    claude = registry.get("claude")

    # Tests inject fakes instead of real providers
    registry.register(FakeAgent("claude"))
"""

import logging
import threading
from typing import Callable

from ..config import ConductorConfig
from ..llm import LLMClient, create_client
from .chat_agent import ChatAgent, ChatAgentProtocol

logger = logging.getLogger(__name__)

AgentFactory = Callable[[str], ChatAgentProtocol]


class AgentRegistry:
    """
    Process-wide cache of chat agents.

    A custom factory replaces provider construction entirely; by default an
    agent id maps to the provider/model configured for it.
    """

    def __init__(
        self,
        config: ConductorConfig | None = None,
        factory: AgentFactory | None = None,
    ):
        self._config = config or ConductorConfig()
        self._factory = factory or self._build_agent
        self._agents: dict[str, ChatAgentProtocol] = {}
        self._lock = threading.Lock()

    def _build_agent(self, agent_id: str) -> ChatAgentProtocol:
        settings = self._config.agents.get(agent_id)
        if settings is None:
            raise KeyError(f"No provider configured for agent '{agent_id}'")
        llm: LLMClient = create_client(provider=settings.provider, model=settings.model)
        return ChatAgent(agent_id, llm)

    def get(self, agent_id: str) -> ChatAgentProtocol:
        """Return the agent for agent_id, building it on first use."""
        agent = self._agents.get(agent_id)
        if agent is not None:
            return agent
        with self._lock:
            agent = self._agents.get(agent_id)
            if agent is None:
                agent = self._factory(agent_id)
                self._agents[agent_id] = agent
                logger.info(f"[AgentRegistry] Built agent: {agent_id}")
        return agent

    def register(self, agent: ChatAgentProtocol) -> None:
        """Install a ready-made agent, replacing any cached one."""
        with self._lock:
            if agent.agent_id in self._agents:
                logger.warning(f"[AgentRegistry] Replacing agent '{agent.agent_id}'")
            self._agents[agent.agent_id] = agent

    def list_info(self) -> list[dict]:
        """Configured agents and whether each has been built yet."""
        info = []
        for agent_id, settings in self._config.agents.items():
            info.append({
                "agent_id": agent_id,
                "provider": settings.provider,
                "model": settings.model,
                "loaded": agent_id in self._agents,
            })
        return info

    @property
    def loaded_count(self) -> int:
        return len(self._agents)
