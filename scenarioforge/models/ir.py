from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Action = Literal["goto", "fill", "click", "expect", "wait", "type", "select", "hover"]

DATA_ACTIONS = ("fill", "type", "select")


class SelectorStrategy(str, Enum):
    UNCHANGED = "unchanged"
    DATA_TESTID = "data-testid"
    ARIA_LABEL = "aria-label"
    ROLE = "role"
    TEXT = "text"
    CSS_FALLBACK = "css-fallback"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TestStep(CamelModel):
    action: Action = Field(..., description="Browser action to perform")
    target: str = Field(..., description="Selector (CSS, role=, text=, [attr=\"value\"]) or URL for goto")
    data: Optional[str] = Field(None, description="Text to type or value to select")
    description: str = Field("", description="Why the step exists, carried through unchanged")

    @field_validator("target")
    @classmethod
    def _target_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("target must not be empty")
        return value

    @property
    def requires_data(self) -> bool:
        return self.action in DATA_ACTIONS

    @property
    def targets_element(self) -> bool:
        """False for steps whose target is not a selector (navigation, fixed-time waits)."""
        if self.action == "goto":
            return False
        return not (self.action == "wait" and self.target.strip().isdecimal())


class TestScenario(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    steps: List[TestStep] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    def steps_missing_data(self) -> List[int]:
        """Indices of steps whose action needs ``data`` but has none."""
        return [i for i, step in enumerate(self.steps) if step.requires_data and step.data is None]


class ValidationOutcome(CamelModel):
    step_index: int
    resolved: bool
    original_target: str
    final_target: str
    strategy: SelectorStrategy = SelectorStrategy.UNCHANGED
    warning: Optional[str] = None


class ValidationReport(CamelModel):
    scenario: TestScenario
    outcomes: List[ValidationOutcome] = Field(default_factory=list)

    @property
    def resolved_count(self) -> int:
        return sum(1 for o in self.outcomes if o.resolved)

    @property
    def warnings(self) -> List[str]:
        return [f"step {o.step_index + 1}: {o.warning}" for o in self.outcomes if o.warning]


class PageObject(CamelModel):
    name: str
    source: str


class CompilationArtifact(CamelModel):
    test_file_name: str
    suite_id: str
    page_objects: List[PageObject] = Field(default_factory=list)
    test_source: str = Field(..., alias="ts")


# Result envelopes

class Credentials(CamelModel):
    username: str
    password: Optional[str] = None
    secret_ref: Optional[str] = None


class ScenarioOutput(CamelModel):
    scenario: TestScenario
    outcomes: List[ValidationOutcome] = Field(default_factory=list)


class RunMetadata(CamelModel):
    generated_at: str
    model: str
    total_time: Optional[str] = None
    source: Optional[str] = None
    mcp_validation_successful: bool = False
    stage: str = "generated"


class LLMRunOutput(CamelModel):
    run_id: str
    outputs: List[ScenarioOutput] = Field(default_factory=list)
    metadata: RunMetadata


class IRStep(CamelModel):
    type: str
    url: Optional[str] = None
    selector: Optional[str] = None
    value: Optional[str] = None


class IRCase(CamelModel):
    id: str
    name: str
    steps: List[IRStep] = Field(default_factory=list)


class CompiledIR(CamelModel):
    suite_id: str
    cases: List[IRCase] = Field(default_factory=list)


class CompilationResult(CamelModel):
    run_id: str
    ir: CompiledIR
    artifacts: CompilationArtifact


class StageError(CamelModel):
    stage: str
    kind: str
    message: str
    scenario_id: Optional[str] = None


class PipelineResult(CamelModel):
    run_id: str
    generation: LLMRunOutput
    compilations: List[CompilationResult] = Field(default_factory=list)
    errors: List[StageError] = Field(default_factory=list)
