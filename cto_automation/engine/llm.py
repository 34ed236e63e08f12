# =============================================================================
# CTO AUTOMATION - LLM CLIENTS
# =============================================================================
"""
LLM Client Module

Tool-calling chat clients used by the agent loop.

Supported LLM Providers:
    - OpenAI (GPT models, any OpenAI-compatible gateway via api_base)
    - Anthropic (Claude models)

Conversation format shared by every client (provider-neutral):

    {"role": "system", "content": "..."}
    {"role": "user", "content": "..."}
    {"role": "assistant", "content": "...", "tool_calls": [{"id", "name", "arguments"}]}
    {"role": "tool", "tool_call_id": "...", "content": "<json>"}

Each client converts that to its provider's wire format.
"""

import os
import time
import json
import logging
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any
from dataclasses import dataclass, field

from cto_automation.errors import CTOAutomationError, ConfigurationError


logger = logging.getLogger(__name__)


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass
class LLMConfig:
    """Configuration for LLM client."""
    provider: str = "openai"
    model: str = "gpt-4o"
    temperature: float = 0.0
    max_tokens: int = 4096
    timeout: int = 120
    max_retries: int = 3

    # OpenAI-compatible gateway
    api_base: Optional[str] = None

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'LLMConfig':
        """Create config from the ``llm`` section of the service config."""
        llm_config = config.get("llm", {})
        return cls(
            provider=llm_config.get("provider", "openai"),
            model=llm_config.get("model", "gpt-4o"),
            temperature=llm_config.get("temperature", 0.0),
            max_tokens=llm_config.get("max_tokens", 4096),
            timeout=llm_config.get("timeout", 120),
            max_retries=llm_config.get("max_retries", 3),
            api_base=llm_config.get("api_base"),
        )


@dataclass
class ToolCall:
    """Represents a tool call from the LLM."""
    id: str
    name: str
    arguments: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}


@dataclass
class ToolResult:
    """Result of a tool execution."""
    tool_call_id: str
    output: Any
    error: Optional[str] = None
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return self.error is None

    def to_message_content(self) -> str:
        """Serialized form fed back to the model."""
        if self.error is not None:
            return json.dumps({"error": self.error})
        return json.dumps(self.output, default=str)


@dataclass
class LLMResponse:
    """Response from LLM invocation."""
    content: str
    tool_calls: List[ToolCall] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""
    latency_ms: float = 0.0

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


@dataclass
class LLMMetrics:
    """Collected metrics from LLM operations."""
    total_requests: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_latency_ms: float = 0.0
    errors: int = 0

    def record(self, response: LLMResponse):
        self.total_requests += 1
        self.total_input_tokens += response.input_tokens
        self.total_output_tokens += response.output_tokens
        self.total_latency_ms += response.latency_ms

    def record_error(self):
        self.errors += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "total_latency_ms": self.total_latency_ms,
            "avg_latency_ms": self.total_latency_ms / max(self.total_requests, 1),
            "errors": self.errors,
        }


# =============================================================================
# EXCEPTIONS
# =============================================================================

class LLMProviderError(CTOAutomationError):
    """Error related to LLM provider."""


# =============================================================================
# LLM CLIENT INTERFACE
# =============================================================================

class LLMClientInterface(ABC):
    """Abstract interface for LLM clients."""

    @abstractmethod
    async def invoke(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs
    ) -> LLMResponse:
        """Invoke the LLM with messages and optional tools."""

    @abstractmethod
    def get_model_name(self) -> str:
        """Get the model name."""


# =============================================================================
# OPENAI CLIENT
# =============================================================================

class OpenAIClient(LLMClientInterface):
    """Client for OpenAI GPT models (or an OpenAI-compatible gateway)."""

    def __init__(self, config: LLMConfig):
        self.config = config
        self.logger = logging.getLogger("cto_automation.llm.openai")
        self._client = None

    def _get_client(self):
        """Get or create OpenAI client."""
        if self._client is None:
            import openai

            api_key = os.environ.get("OPENAI_API_KEY")
            if not api_key:
                raise ConfigurationError("OPENAI_API_KEY not set")

            kwargs = {
                "api_key": api_key,
                "timeout": self.config.timeout,
                "max_retries": self.config.max_retries,
            }
            if self.config.api_base:
                kwargs["base_url"] = self.config.api_base

            self._client = openai.AsyncOpenAI(**kwargs)
        return self._client

    def _convert_tools(self, tools: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Convert tools to OpenAI function format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool["name"],
                    "description": tool["description"],
                    "parameters": tool["parameters"],
                },
            }
            for tool in tools
        ]

    @staticmethod
    def _convert_messages(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        converted = []
        for msg in messages:
            if msg["role"] == "assistant" and msg.get("tool_calls"):
                converted.append({
                    "role": "assistant",
                    "content": msg.get("content") or None,
                    "tool_calls": [
                        {
                            "id": tc["id"],
                            "type": "function",
                            "function": {
                                "name": tc["name"],
                                "arguments": json.dumps(tc["arguments"]),
                            },
                        }
                        for tc in msg["tool_calls"]
                    ],
                })
            elif msg["role"] == "tool":
                converted.append({
                    "role": "tool",
                    "tool_call_id": msg["tool_call_id"],
                    "content": msg["content"],
                })
            else:
                converted.append({"role": msg["role"], "content": msg["content"]})
        return converted

    async def invoke(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs
    ) -> LLMResponse:
        """Invoke OpenAI with messages."""
        client = self._get_client()
        start_time = time.time()

        request_kwargs = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "messages": self._convert_messages(messages),
        }

        if tools:
            request_kwargs["tools"] = self._convert_tools(tools)

        try:
            response = await client.chat.completions.create(**request_kwargs)
        except Exception as e:
            self.logger.error(f"OpenAI API error: {e}")
            raise LLMProviderError(f"OpenAI API error: {e}") from e

        latency = (time.time() - start_time) * 1000

        message = response.choices[0].message
        content = message.content or ""
        tool_calls = []

        for tc in message.tool_calls or []:
            try:
                arguments = json.loads(tc.function.arguments or "{}")
            except json.JSONDecodeError:
                self.logger.warning(f"Malformed arguments for tool {tc.function.name}")
                arguments = {}
            tool_calls.append(ToolCall(id=tc.id, name=tc.function.name, arguments=arguments))

        return LLMResponse(
            content=content,
            tool_calls=tool_calls,
            input_tokens=response.usage.prompt_tokens if response.usage else 0,
            output_tokens=response.usage.completion_tokens if response.usage else 0,
            model=response.model,
            latency_ms=latency,
        )

    def get_model_name(self) -> str:
        return self.config.model


# =============================================================================
# ANTHROPIC CLIENT
# =============================================================================

class AnthropicClient(LLMClientInterface):
    """Client for Anthropic Claude models."""

    def __init__(self, config: LLMConfig):
        self.config = config
        self.logger = logging.getLogger("cto_automation.llm.anthropic")
        self._client = None

    def _get_client(self):
        """Get or create Anthropic client."""
        if self._client is None:
            import anthropic

            api_key = os.environ.get("ANTHROPIC_API_KEY")
            if not api_key:
                raise ConfigurationError("ANTHROPIC_API_KEY not set")

            self._client = anthropic.AsyncAnthropic(
                api_key=api_key,
                timeout=self.config.timeout,
                max_retries=self.config.max_retries,
            )
        return self._client

    def _convert_tools(self, tools: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Convert tools to Anthropic format."""
        return [
            {
                "name": tool["name"],
                "description": tool["description"],
                "input_schema": tool["parameters"],
            }
            for tool in tools
        ]

    @staticmethod
    def _convert_messages(messages: List[Dict[str, Any]]):
        """Split out the system prompt and fold tool results into user turns."""
        system_parts = []
        api_messages: List[Dict[str, Any]] = []

        for msg in messages:
            role = msg["role"]
            if role == "system":
                system_parts.append(msg["content"])
            elif role == "assistant" and msg.get("tool_calls"):
                blocks = []
                if msg.get("content"):
                    blocks.append({"type": "text", "text": msg["content"]})
                for tc in msg["tool_calls"]:
                    blocks.append({
                        "type": "tool_use",
                        "id": tc["id"],
                        "name": tc["name"],
                        "input": tc["arguments"],
                    })
                api_messages.append({"role": "assistant", "content": blocks})
            elif role == "tool":
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg["tool_call_id"],
                    "content": msg["content"],
                }
                # Consecutive results belong to the same user turn
                last = api_messages[-1] if api_messages else None
                if last and last["role"] == "user" and isinstance(last["content"], list):
                    last["content"].append(block)
                else:
                    api_messages.append({"role": "user", "content": [block]})
            else:
                api_messages.append({"role": role, "content": msg["content"]})

        return "\n\n".join(system_parts) or None, api_messages

    async def invoke(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs
    ) -> LLMResponse:
        """Invoke Claude with messages."""
        client = self._get_client()
        start_time = time.time()

        system_message, api_messages = self._convert_messages(messages)

        request_kwargs = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "messages": api_messages,
        }

        if system_message:
            request_kwargs["system"] = system_message

        if tools:
            request_kwargs["tools"] = self._convert_tools(tools)

        try:
            response = await client.messages.create(**request_kwargs)
        except Exception as e:
            self.logger.error(f"Anthropic API error: {e}")
            raise LLMProviderError(f"Anthropic API error: {e}") from e

        latency = (time.time() - start_time) * 1000

        text_parts = []
        tool_calls = []

        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(id=block.id, name=block.name, arguments=block.input))

        return LLMResponse(
            content="".join(text_parts),
            tool_calls=tool_calls,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=response.model,
            latency_ms=latency,
        )

    def get_model_name(self) -> str:
        return self.config.model


# =============================================================================
# FACTORY FUNCTION
# =============================================================================

def create_llm_client(config: LLMConfig) -> LLMClientInterface:
    """Build the client for the configured provider."""
    provider = config.provider.lower()

    if provider == "openai":
        client = OpenAIClient(config)
    elif provider == "anthropic":
        client = AnthropicClient(config)
    else:
        raise ConfigurationError(f"Unknown LLM provider: {provider}")

    logger.info(f"Initialized {provider} client with model {config.model}")
    return client


__all__ = [
    "LLMConfig",
    "ToolCall",
    "ToolResult",
    "LLMResponse",
    "LLMMetrics",
    "LLMProviderError",
    "LLMClientInterface",
    "OpenAIClient",
    "AnthropicClient",
    "create_llm_client",
]
