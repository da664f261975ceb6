"""Prompt templates and few-shot prompt assembly."""

from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, Field

ICON_LIST = """\
cloud
cloud-drizzle
cloud-fog
cloud-hail
cloud-lightning
cloud-moon
cloud-moon-rain
cloud-rain
cloud-rain-wind
cloud-snow
cloud-sun
cloud-sun-rain
cloudy
snowflake
sun
sun-snow
thermometer-snowflake
thermometer-sun
wind"""


class Example(BaseModel):
    """A worked input/output pair shown to the model."""

    input: str
    output: str


class ProductPrompt(BaseModel):
    """Prompt material for one forecast product."""

    system: str | None = None
    instruction: str
    examples: list[Example] = Field(default_factory=list)
    max_tokens: int | None = Field(default=None, ge=1)


class PromptTemplates(BaseModel):
    """Prompt material for every forecast product."""

    summary: ProductPrompt
    breakdown: ProductPrompt


def wrap_examples(examples: Sequence[Example]) -> str:
    """Wrap examples in the ``<examples>`` delimiter format."""
    parts = ["<examples>"]
    for example in examples:
        parts.append(f"<example>input: {example.input}\noutput: {example.output}</example>")
    parts.append("</examples>")
    return "".join(parts)


def build_prompt(
    instruction: str,
    examples: Sequence[Example],
    payload: str,
    *,
    context: str | None = None,
) -> str:
    """Assemble the final prompt text.

    The result is the instruction, the wrapped examples and the labelled
    payload separated by blank lines, optionally preceded by ``context``
    for backends that have no separate system prompt. Output depends only
    on the arguments.
    """
    sections = [instruction, wrap_examples(examples), f"input: {payload}"]
    if context:
        sections.insert(0, context)
    return "\n\n".join(sections)


_EXAMPLE_INPUT = (
    '[{"name": "Tonight", "start_time": "2024-06-08T20:00:00-07:00", '
    '"end_time": "2024-06-09T06:00:00-07:00", "is_daytime": false, "temperature": 54, '
    '"temperature_unit": "F", "wind_speed": "2 mph", "wind_direction": "E", '
    '"short_forecast": "Mostly Cloudy", '
    '"detailed_forecast": "Mostly cloudy, with a low around 54. East wind around 2 mph."}, '
    '{"name": "Sunday", "start_time": "2024-06-09T06:00:00-07:00", '
    '"end_time": "2024-06-09T18:00:00-07:00", "is_daytime": true, "temperature": 74, '
    '"temperature_unit": "F", "wind_speed": "1 to 6 mph", "wind_direction": "SW", '
    '"short_forecast": "Mostly Sunny", '
    '"detailed_forecast": "Mostly sunny. High near 74, with temperatures falling to around 72 '
    'in the afternoon. Southwest wind 1 to 6 mph."}, '
    '{"name": "Sunday Night", "start_time": "2024-06-09T18:00:00-07:00", '
    '"end_time": "2024-06-10T06:00:00-07:00", "is_daytime": false, "temperature": 51, '
    '"temperature_unit": "F", "wind_speed": "2 to 6 mph", "wind_direction": "W", '
    '"short_forecast": "Mostly Cloudy", '
    '"detailed_forecast": "Mostly cloudy, with a low around 51. West wind 2 to 6 mph."}]'
)

SUMMARY_PROMPT = ProductPrompt(
    system=(
        "You are a tool that can provide concise summaries of weather forecasts.\n"
        "You have access to the following list of icons:\n"
        f'"""\n{ICON_LIST}\n"""'
    ),
    instruction=(
        "Input is a JSON array with one entry per forecast period.\n"
        'Output is a JSON object with the key "summary" containing the overall forecast in at '
        'most four sentences and "icon" containing the icon that best fits the soonest weather '
        "for this summary.\n"
        "Each entry contains relevant weather information including a detailed text forecast.\n"
        "Do not include any information that is not present in the input.\n"
        "Do not comment twice on the same weather condition.\n"
        "Focus mainly on the daytime periods.\n"
        "Avoid editorializing or making assumptions.\n"
        'Avoid referring to "periods" in the output.\n'
        "Make the output sound like a human wrote it, with concise but friendly language and "
        "complete sentences.\n"
        "Only include the JSON, do not include outside text."
    ),
    examples=[
        Example(
            input=_EXAMPLE_INPUT,
            output=(
                '{"summary": "Tonight, mostly cloudy with a low around 54. Sunday, mostly sunny '
                "with a high near 74, temperatures falling to around 72 in the afternoon. "
                'Sunday night, mostly cloudy with a low around 51. Winds light and variable.", '
                '"icon": "cloud-moon"}'
            ),
        )
    ],
)

BREAKDOWN_PROMPT = ProductPrompt(
    system=(
        "You are a tool that can provide concise weather forecast breakdowns.\n"
        "You have access to the following list of icons:\n"
        f'"""\n{ICON_LIST}\n"""'
    ),
    instruction=(
        "Input is a JSON array with one entry per forecast period.\n"
        "Output is a JSON array with one object per forecast period containing the following "
        "key-value pairs:\n"
        '"name": the "name" field on the given forecast period,\n'
        '"time_of_day": either day or night based upon the given forecast period,\n'
        '"icon": the icon that best fits the "detailed_forecast" for this forecast period,\n'
        '"beaufort": the Beaufort scale description (Calm, Light air, Light breeze, Gentle '
        "breeze, Moderate breeze, Fresh breeze, Strong breeze, Near gale, Gale, Strong gale, "
        'Storm, Violent storm, Hurricane force) that best fits the "wind_speed" for this '
        "period.\n"
        "Do not include any information that is not present in the input.\n"
        "Only include the JSON, do not include outside text.\n"
        "Structure the output exactly like the example output, with all whitespace removed."
    ),
    examples=[
        Example(
            input=_EXAMPLE_INPUT,
            output=(
                '[{"name":"Tonight","time_of_day":"night","icon":"cloud-moon",'
                '"beaufort":"Light air"},'
                '{"name":"Sunday","time_of_day":"day","icon":"cloud-sun",'
                '"beaufort":"Light breeze"},'
                '{"name":"Sunday Night","time_of_day":"night","icon":"cloud-moon",'
                '"beaufort":"Light breeze"}]'
            ),
        )
    ],
)

DEFAULT_TEMPLATES = PromptTemplates(summary=SUMMARY_PROMPT, breakdown=BREAKDOWN_PROMPT)


class _TemplateOverrides(BaseModel):
    summary: ProductPrompt | None = None
    breakdown: ProductPrompt | None = None


def load_templates(path: Path | None) -> PromptTemplates:
    """Load prompt templates, overriding the defaults from a JSON file.

    The file may define either or both of ``summary`` and ``breakdown``;
    products it omits keep the built-in prompt.
    """
    if path is None:
        return DEFAULT_TEMPLATES

    overrides = _TemplateOverrides.model_validate_json(path.read_text(encoding="utf-8"))
    return PromptTemplates(
        summary=overrides.summary or DEFAULT_TEMPLATES.summary,
        breakdown=overrides.breakdown or DEFAULT_TEMPLATES.breakdown,
    )
