import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from google import genai
from google.genai import types

from tipbook.errors import GenerationError


@dataclass
class GenerationResult:
    text: str
    usage_metadata: Any
    model: str


class TextGenerator:
    """Abstract text-generation backend: one blocking request, one reply."""

    model: str = ""

    def generate(
        self, instructions: str, prompt: str, json_schema: Optional[dict] = None
    ) -> GenerationResult:
        """Sends the prompt and returns the full reply.

        When json_schema is given, the backend is asked to reply with a JSON
        object matching it.
        """
        raise NotImplementedError


class GeminiGenerator(TextGenerator):
    """TextGenerator backed by the Gemini API."""

    def __init__(self, client: genai.Client, model: str):
        self.client = client
        self.model = model

    def _build_config(self, instructions, json_schema):
        if json_schema is None:
            return types.GenerateContentConfig(system_instruction=instructions)

        return types.GenerateContentConfig(
            system_instruction=instructions,
            response_mime_type="application/json",
            response_json_schema=json_schema,
        )

    def generate(self, instructions, prompt, json_schema=None):
        try:
            response = self.client.models.generate_content(
                model=self.model,
                config=self._build_config(instructions, json_schema),
                contents=prompt,
            )
        except Exception as e:
            raise GenerationError(f"{self.model} request failed: {e}") from e

        if not response.text:
            raise GenerationError(f"{self.model} returned an empty reply")

        return GenerationResult(
            text=response.text,
            usage_metadata=response.usage_metadata,
            model=self.model,
        )


def create_generator(api_key: str, model: str) -> GeminiGenerator:
    client = genai.Client(api_key=api_key)
    return GeminiGenerator(client, model)


@dataclass
class CostReport:
    total_cost: float
    input_cost: float
    output_cost: float
    prompt_tokens: int
    output_tokens: int
    tier_name: str


# USD per 1M tokens: (input, output, input above 200k, output above 200k)
MODEL_PRICES = {
    "gemini-3-pro-preview": (2.00, 12.00, 4.00, 18.00),
    "gemini-2.5-pro": (1.25, 10.00, 2.50, 15.00),
    "gemini-2.5-flash": (0.30, 2.50, 0.30, 2.50),
    "gemini-2.5-flash-lite": (0.10, 0.40, 0.10, 0.40),
}

LONG_CONTEXT_THRESHOLD = 200_000


def calculate_cost(usage_metadata, model: str) -> CostReport:
    """
    Calculates the cost of one call from its usage_metadata.
    Handles the pricing tiers for prompts above/below 200k tokens.
    Models without a known price are reported as free.
    """

    # usage_metadata is an SDK object, but tests pass plain dicts
    def get_val(data, attr):
        if hasattr(data, "get"):
            return data.get(attr) or 0
        return getattr(data, attr, None) or 0

    prompt_tokens = get_val(usage_metadata, "prompt_token_count")
    candidates_tokens = get_val(usage_metadata, "candidates_token_count")
    thoughts_tokens = get_val(usage_metadata, "thoughts_token_count")

    # Thoughts are billed as output tokens
    total_output_tokens = candidates_tokens + thoughts_tokens

    model_name = model.removeprefix("models/")
    prices = MODEL_PRICES.get(model_name)
    if prices is None:
        input_rate, output_rate = 0.0, 0.0
        tier_name = "Unknown model"
    elif prompt_tokens > LONG_CONTEXT_THRESHOLD:
        input_rate, output_rate = prices[2], prices[3]
        tier_name = "Long Context (>200k)"
    else:
        input_rate, output_rate = prices[0], prices[1]
        tier_name = "Standard (<200k)"

    input_cost = (prompt_tokens / 1_000_000) * input_rate
    output_cost = (total_output_tokens / 1_000_000) * output_rate

    return CostReport(
        total_cost=input_cost + output_cost,
        input_cost=input_cost,
        output_cost=output_cost,
        prompt_tokens=prompt_tokens,
        output_tokens=total_output_tokens,
        tier_name=tier_name,
    )


class CostTracker:
    """Tracks the cost of LLM usage over a run."""

    def __init__(self, echo=print):
        self.total_cost = 0.0
        self.echo = echo

    def update(self, result: GenerationResult, item_name: str):
        """Adds the cost of one reply to the running total."""
        report = calculate_cost(result.usage_metadata, result.model)
        self.total_cost += report.total_cost
        self.echo(
            f"  {item_name} cost: ${report.total_cost:.6f} | Total so far: ${self.total_cost:.6f}"
        )


def make_timestamp(now: Optional[datetime] = None) -> str:
    """Filesystem-safe timestamp with microseconds, e.g. 2024-05-01T10-22-03-120456."""
    now = now or datetime.now()
    return now.isoformat(timespec="microseconds").replace(":", "-").replace(".", "-")


def write_json(path: Path, data, mode: str = "w"):
    with path.open(mode, encoding="utf-8") as f_out:
        json.dump(data, f_out, indent=2, ensure_ascii=False)
        f_out.write("\n")


def singular(item_kind: str) -> str:
    """'tips' -> 'tip'. Anything not ending in 's' is returned unchanged."""
    item_kind = item_kind.strip()
    if len(item_kind) > 1 and item_kind.endswith("s"):
        return item_kind[:-1]
    return item_kind
