import json
import logging
from typing import Any, List, Optional

from openai import OpenAI
from pydantic import BaseModel, Field, ValidationError

from scenarioforge.errors import GenerationError, SchemaValidationError
from scenarioforge.models.ir import Credentials, TestScenario, TestStep

SYSTEM_PROMPT = """
You are an expert AQE (Automated Quality Engineer). Your goal is to convert a natural language test objective into structured JSON browser test scenarios.

Output Schema (JSON):
{
  "scenarios": [
    {
      "name": "Short test name",
      "description": "What the scenario checks",
      "tags": ["optional", "labels"],
      "steps": [
        {
          "action": "goto" | "fill" | "click" | "expect" | "wait" | "type" | "select" | "hover",
          "target": "Selector of the element, or URL/path for goto",
          "data": "Text to fill/type or option to select. Only for fill, type, select",
          "description": "Why this step is needed"
        }
      ]
    }
  ]
}

Rules:
1. ONLY return valid JSON. Do not include markdown formatting like ```json.
2. 'target' must be a Playwright selector: prefer '#id', '[data-testid="..."]', '[aria-label="..."]', 'role=button' or 'text=Visible label'.
3. 'data' is REQUIRED for fill, type and select steps.
4. Start every scenario with a 'goto' step.
5. Use 'expect' to assert that an element is visible after the interaction.
6. 'wait' takes either a selector or a number of milliseconds as 'target'.
"""


class DraftScenario(BaseModel):
    name: str
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    steps: List[TestStep]


class ScenarioGenerator:
    """Asks the language model for draft scenarios. Returns the raw completion text."""

    def __init__(self, api_key: str = None, base_url: str = None, model: str = "gpt-4o",
                 client: Any = None, logger: logging.Logger = None):
        self.model = model
        self.logger = logger or logging.getLogger(__name__)
        self.client = client
        if self.client is None and api_key:
            self.client = OpenAI(api_key=api_key, base_url=base_url)

    def generate(self, objective: str, url: str, credentials: Optional[Credentials] = None) -> str:
        if self.client is None:
            raise GenerationError("OPENAI_API_KEY is not set; cannot call the language model")

        try:
            self.logger.info("Calling LLM: %s...", self.model)
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": self._build_prompt(objective, url, credentials)},
                ],
                temperature=0.0,
            )
            content = response.choices[0].message.content
        except Exception as e:
            raise GenerationError(f"Error calling the language model ({self.model}): {e}") from e

        if not content or not content.strip():
            raise GenerationError("The language model returned an empty response")
        return content

    def _build_prompt(self, objective: str, url: str, credentials: Optional[Credentials]) -> str:
        lines = [f"Objective: {objective}", f"Application URL: {url}"]
        if credentials:
            lines.append(f"Username: {credentials.username}")
            if credentials.password:
                lines.append(f"Password: {credentials.password}")
        return "\n".join(lines)


def extract_json(raw_text: str) -> Any:
    content = (raw_text or "").strip()
    # Clean up potential markdown formatting if the model disobeys
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else ""
    if content.endswith("```"):
        content = content[:-3]
    content = content.strip()

    try:
        return json.loads(content)
    except json.JSONDecodeError:
        pass

    starts = [i for i in (content.find("{"), content.find("[")) if i >= 0]
    if starts:
        start = min(starts)
        end = content.rfind("}" if content[start] == "{" else "]")
        if end > start:
            try:
                return json.loads(content[start:end + 1])
            except json.JSONDecodeError:
                pass
    raise GenerationError(f"No parsable JSON in model output: {content[:80]!r}")


def parse_scenarios(raw_text: str, id_prefix: str) -> List[TestScenario]:
    """
    Parse generation output into scenarios with ids ``<id_prefix>-<n>``.

    Accepts ``{"scenarios": [...]}``, a bare list, or a single scenario object.
    Missing ``data`` on fill/type/select is kept as-is; it is reported later.
    """
    payload = extract_json(raw_text)
    if isinstance(payload, dict) and "scenarios" in payload:
        payload = payload["scenarios"]
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        raise SchemaValidationError(f"Expected a scenario object or list, got {type(payload).__name__}")
    if not payload:
        raise SchemaValidationError("Model output contains no scenarios")

    scenarios = []
    for n, item in enumerate(payload, start=1):
        try:
            draft = DraftScenario.model_validate(item)
        except ValidationError as e:
            locations = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise SchemaValidationError(f"Scenario {n} does not match the draft schema: {locations}") from e
        scenarios.append(TestScenario(id=f"{id_prefix}-{n}", **draft.model_dump()))
    return scenarios
