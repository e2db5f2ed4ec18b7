"""AI tools: schedule optimisation and bottleneck prediction.

Both tools are stateless pass-throughs to a prompt-completion model.  A
prompt declares its input and output fields with pydantic models; the output
field descriptions are written into the prompt and the model is asked for a
JSON object that is validated back into the output model.
"""

import json
from dataclasses import dataclass

import google.generativeai as genai
from flask import current_app
from pydantic import BaseModel, Field

from ..errors import DependencyError
from ..schemas import parse


class OptimizeScheduleInput(BaseModel):
    production_data: str = Field(
        min_length=1,
        description="Real-time production data, including machine status, employee performance, and material availability.",
    )
    constraints: str = Field(
        min_length=1,
        description="Constraints such as deadlines, priority orders, and machine maintenance schedules.",
    )
    optimization_goals: str = Field(
        min_length=1,
        description="Optimization goals such as minimizing bottlenecks, maximizing efficiency, and reducing costs.",
    )


class OptimizeScheduleOutput(BaseModel):
    optimized_schedule: str = Field(
        description="An optimized production schedule that minimizes bottlenecks and maximizes efficiency."
    )
    predicted_bottlenecks: str = Field(description="Potential bottlenecks in the production process.")


class PredictBottlenecksInput(BaseModel):
    current_performance_data: str = Field(
        min_length=1,
        description="Current throughput, defect rates and machine downtime per stage, with units.",
    )
    historical_data: str = Field(
        min_length=1,
        description="Past performance, seasonal trends, and previous bottleneck events.",
    )
    production_schedule: str = Field(
        min_length=1,
        description="The current production schedule, including style information, quantities, and deadlines.",
    )


class PredictBottlenecksOutput(BaseModel):
    predicted_bottlenecks: str = Field(
        description="Potential bottlenecks, including the specific stage, the expected impact, and the confidence level."
    )
    recommendations: str = Field(
        description="Recommendations to address the bottlenecks: schedule adjustments, resource allocation, or process improvements."
    )


@dataclass(frozen=True)
class PromptDefinition:
    name: str
    template: str
    input_schema: type
    output_schema: type

    def render(self, data: BaseModel) -> str:
        fields = "\n".join(
            f'- "{name}": {info.description}'
            for name, info in self.output_schema.model_fields.items()
        )
        return (
            self.template.format(**data.model_dump())
            + "\n\nRespond with a single JSON object with exactly these string fields:\n"
            + fields
        )


OPTIMIZE_SCHEDULE = PromptDefinition(
    name="optimizeProductionSchedule",
    template=(
        "You are an AI assistant that helps production managers optimize production line "
        "schedules based on real-time data.\n\n"
        "You will analyze the production data, constraints, and optimization goals to generate "
        "an optimized production schedule that minimizes bottlenecks and maximizes efficiency.\n\n"
        "Production Data: {production_data}\n"
        "Constraints: {constraints}\n"
        "Optimization Goals: {optimization_goals}\n\n"
        "Based on the information provided, generate an optimized production schedule and "
        "predict any potential bottlenecks in the production process."
    ),
    input_schema=OptimizeScheduleInput,
    output_schema=OptimizeScheduleOutput,
)

PREDICT_BOTTLENECKS = PromptDefinition(
    name="predictProductionBottlenecks",
    template=(
        "You are an expert production supervisor with years of experience in garment "
        "manufacturing. Your goal is to analyze production data and predict potential "
        "bottlenecks in the production line.\n\n"
        "Based on the current performance data, historical data, and production schedule, "
        "identify potential bottlenecks, their expected impact, and recommend solutions.\n\n"
        "Current Performance Data: {current_performance_data}\n"
        "Historical Data: {historical_data}\n"
        "Production Schedule: {production_schedule}"
    ),
    input_schema=PredictBottlenecksInput,
    output_schema=PredictBottlenecksOutput,
)


def _strip_fences(text: str) -> str:
    text = (text or "").strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


class PromptCompletionService:
    """Runs :class:`PromptDefinition` prompts against a Gemini model.

    ``model`` may be injected (anything with ``generate_content``); otherwise
    one is built lazily from ``api_key`` on first use.
    """

    def __init__(self, api_key: str | None = None, model_name: str = "gemini-2.0-pro", model=None):
        self.api_key = api_key
        self.model_name = model_name
        self._model = model

    @property
    def model(self):
        if self._model is None:
            if not self.api_key:
                raise DependencyError("AI service is not configured. Set GEMINI_API_KEY.")
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(model_name=self.model_name)
        return self._model

    def run(self, prompt: PromptDefinition, payload) -> BaseModel:
        data = parse(prompt.input_schema, payload)
        text = prompt.render(data)
        try:
            response = self.model.generate_content(
                text, generation_config={"response_mime_type": "application/json"}
            )
            raw = response.text
        except DependencyError:
            raise
        except Exception as e:
            current_app.logger.error("prompt %s failed: %s", prompt.name, e)
            raise DependencyError(f"The AI service failed: {e}") from e

        try:
            return prompt.output_schema.model_validate(json.loads(_strip_fences(raw)))
        except ValueError as e:
            current_app.logger.error("prompt %s returned unusable output: %s", prompt.name, e)
            raise DependencyError("The AI service returned an unexpected response.") from e

    def optimize_production_schedule(self, payload) -> OptimizeScheduleOutput:
        return self.run(OPTIMIZE_SCHEDULE, payload)

    def predict_production_bottlenecks(self, payload) -> PredictBottlenecksOutput:
        return self.run(PREDICT_BOTTLENECKS, payload)
