"""
Base Agent class for the fan-out research system.

The planner, the research workers and the synthesizer inherit from this.
"""

import asyncio
import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)


class Agent:
    """
    Base class for all agents in the system.

    Each agent has:
    - A name and role (what it is responsible for)
    - Access to tools, registered by name
    """

    def __init__(self, name: str, role: str):
        self.name = name
        self.role = role
        self.tools: Dict[str, Any] = {}

        logger.debug(f"Initialized agent: {self.name}")

    def register_tool(self, name: str, tool: Any) -> None:
        """Register a tool that this agent can use."""
        self.tools[name] = tool
        logger.debug(f"{self.name}: Registered tool '{name}'")

    def has_tool(self, name: str) -> bool:
        return name in self.tools

    def get_tool_descriptions(self) -> str:
        """Get a formatted string describing available tools."""
        if not self.tools:
            return "No tools available."

        descriptions = []
        for name, tool in self.tools.items():
            desc = getattr(tool, "description", f"Tool: {name}")
            descriptions.append(f"- {name}: {desc}")

        return "\n".join(descriptions)

    async def execute_tool(self, tool_name: str, **arguments: Any) -> Any:
        """
        Execute a tool with given arguments.

        Args:
            tool_name: Name of the registered tool
            arguments: Keyword arguments to pass to the tool

        Returns:
            Tool execution result

        Raises:
            ValueError: if the tool is not registered or not callable
        """
        if tool_name not in self.tools:
            raise ValueError(f"Tool '{tool_name}' not registered")

        tool = self.tools[tool_name]

        logger.debug(f"{self.name}: Executing tool '{tool_name}' with args: {arguments}")

        # Try different methods tools might have
        if hasattr(tool, "search") and callable(getattr(tool, "search")):
            method = tool.search
        elif hasattr(tool, "execute") and callable(getattr(tool, "execute")):
            method = tool.execute
        elif callable(tool):
            method = tool
        else:
            raise ValueError(f"Tool '{tool_name}' doesn't have a callable method")

        if asyncio.iscoroutinefunction(method):
            result = await method(**arguments)
        else:
            # Blocking tools run off the loop so timeouts around this call still fire
            result = await asyncio.to_thread(method, **arguments)

        if asyncio.iscoroutine(result):
            result = await result

        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name='{self.name}', tools={list(self.tools.keys())})"
