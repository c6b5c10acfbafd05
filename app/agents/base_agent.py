"""Shared plumbing for the pydantic-ai agents behind each blueprint section."""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, TypeVar, cast

from pydantic import BaseModel
from pydantic_ai import Agent

from app.config import settings
from app.core.circuit_breaker import get_circuit_breaker

logger = logging.getLogger(__name__)

InputT = TypeVar("InputT", bound=BaseModel)
OutputT = TypeVar("OutputT", bound=BaseModel)


@dataclass(slots=True)
class AgentRun(Generic[OutputT]):
    """Structured output plus what it cost to produce."""

    output: OutputT
    model: str
    input_tokens: int
    output_tokens: int
    cost: float
    elapsed_ms: int


def estimate_cost(input_tokens: int, output_tokens: int) -> float:
    """Approximate USD cost from token counts using the configured blended rates."""
    return round(
        input_tokens / 1000 * settings.llm_cost_per_1k_input_tokens
        + output_tokens / 1000 * settings.llm_cost_per_1k_output_tokens,
        6,
    )


def _token_count(usage: object, *names: str) -> int:
    for name in names:
        value = getattr(usage, name, None)
        if value:
            return int(value)
    return 0


class BaseAgent(ABC, Generic[InputT, OutputT]):
    """One structured-output LLM call per blueprint section.

    Subclasses provide ``system_prompt``, ``output_type`` and ``_build_prompt``
    and pick a ``model_tier``. Every call goes through the circuit breaker
    shared by all agents of that tier.
    """

    model_tier: str = "standard"
    temperature: float = 0.7

    def __init__(self, model_override: str | None = None) -> None:
        self._model = model_override or settings.get_model(self.model_tier)
        self._agent: Agent[None, OutputT] | None = None

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def agent(self) -> Agent[None, OutputT]:
        """pydantic-ai agent, created on first use."""
        if self._agent is None:
            self._agent = cast(
                Agent[None, OutputT],
                Agent(
                    model=self._model,
                    output_type=self.output_type,
                    system_prompt=self.system_prompt,
                    retries=settings.llm_max_retries,
                    model_settings={
                        "temperature": self.temperature,
                        "timeout": settings.get_llm_timeout(self.model_tier),
                    },
                ),
            )
        return self._agent

    @property
    @abstractmethod
    def system_prompt(self) -> str:
        ...

    @property
    @abstractmethod
    def output_type(self) -> type[OutputT]:
        ...

    @abstractmethod
    def _build_prompt(self, input_data: InputT) -> str:
        ...

    async def run(self, input_data: InputT) -> OutputT:
        return (await self.run_with_usage(input_data)).output

    async def run_with_usage(self, input_data: InputT) -> AgentRun[OutputT]:
        """Run the agent and report token usage and estimated cost.

        Raises:
            CircuitOpenError: If the model tier's circuit is open.
        """
        prompt = self._build_prompt(input_data)
        name = type(self).__name__
        logger.debug("Agent call", extra={"agent": name, "model": self._model, "prompt_chars": len(prompt)})

        breaker = get_circuit_breaker(f"llm:{self.model_tier}")
        started = time.perf_counter()
        result = await breaker.call(lambda: self.agent.run(prompt))
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        usage = result.usage()
        input_tokens = _token_count(usage, "input_tokens", "request_tokens")
        output_tokens = _token_count(usage, "output_tokens", "response_tokens")
        run = AgentRun(
            output=result.output,
            model=self._model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=estimate_cost(input_tokens, output_tokens),
            elapsed_ms=elapsed_ms,
        )
        logger.info(
            "Agent call completed",
            extra={
                "agent": name,
                "model": self._model,
                "elapsed_ms": elapsed_ms,
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "cost": run.cost,
            },
        )
        return run
