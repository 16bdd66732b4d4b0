import logging
import time
import uuid
from datetime import datetime, timezone
from threading import Event
from typing import List, Optional

from scenarioforge.compiler.compiler import CompileOptions, Compiler, compile_ir
from scenarioforge.driver.page import PageProvider
from scenarioforge.errors import CompilationInputError, NavigationError, RunCancelledError, StepResolutionWarning
from scenarioforge.llm.parser import ScenarioGenerator, parse_scenarios
from scenarioforge.models.ir import (
    CompilationResult,
    Credentials,
    LLMRunOutput,
    PipelineResult,
    RunMetadata,
    ScenarioOutput,
    StageError,
)
from scenarioforge.validator.validator import ScenarioValidator


def new_run_id() -> str:
    return f"run_{uuid.uuid4().hex[:12]}"


class Pipeline:
    """generate (LLM) -> validate (live page) -> compile (pure)."""

    def __init__(self, generator: ScenarioGenerator, browser: PageProvider,
                 compile_options: CompileOptions = None, validator: ScenarioValidator = None,
                 compiler: Compiler = None, logger: logging.Logger = None):
        self.generator = generator
        self.browser = browser
        self.compile_options = compile_options or CompileOptions()
        self.logger = logger or logging.getLogger(__name__)
        self.validator = validator or ScenarioValidator(logger=self.logger)
        self.compiler = compiler or Compiler()

    def run(self, objective: str, url: str, credentials: Optional[Credentials] = None,
            run_id: Optional[str] = None, cancel_event: Optional[Event] = None) -> PipelineResult:
        run_id = run_id or new_run_id()
        started = time.perf_counter()
        errors: List[StageError] = []

        # 1. Generate (GenerationError / SchemaValidationError are fatal for the run)
        self._check_cancelled(cancel_event, run_id)
        self.logger.info("[%s] Generating scenarios for: '%s'", run_id, objective[:50])
        raw_text = self.generator.generate(objective, url, credentials)
        scenarios = parse_scenarios(raw_text, id_prefix=run_id)
        outputs = [ScenarioOutput(scenario=s) for s in scenarios]
        stage = "generated"

        # 2. Validate (cancellation from here on keeps what is already finished)
        cancelled = False
        validated = 0
        try:
            for index, scenario in enumerate(scenarios):
                if self._cancelled(cancel_event, run_id, "validation", errors):
                    cancelled = True
                    break
                report = self.validator.validate(scenario, url, self.browser)
                outputs[index] = ScenarioOutput(scenario=report.scenario, outcomes=report.outcomes)
                unresolved = [o for o in report.outcomes if not o.resolved]
                if unresolved:
                    errors.append(StageError(
                        stage="validation",
                        kind=StepResolutionWarning.kind,
                        message="; ".join(f"step {o.step_index + 1}: {o.warning}" for o in unresolved),
                        scenario_id=scenario.id,
                    ))
                validated += 1
            else:
                stage = "validated"
        except NavigationError as e:
            self.logger.error("[%s] Validation stopped: %s", run_id, e)
            errors.append(StageError(stage="validation", kind=e.kind, message=e.message))
        validation_ok = validated == len(scenarios)

        # 3. Compile
        compilations = []
        for index, output in enumerate(outputs):
            if cancelled or self._cancelled(cancel_event, run_id, "compilation", errors):
                break
            options = self._options_for(index, len(outputs))
            try:
                artifact = self.compiler.compile(output.scenario, options, output.outcomes)
            except CompilationInputError as e:
                self.logger.error("[%s] %s", run_id, e)
                errors.append(StageError(stage="compilation", kind=e.kind, message=e.message,
                                         scenario_id=output.scenario.id))
                continue
            compilations.append(CompilationResult(
                run_id=run_id,
                ir=compile_ir(output.scenario, artifact.suite_id),
                artifacts=artifact,
            ))
        if compilations:
            stage = "compiled"

        elapsed = time.perf_counter() - started
        metadata = RunMetadata(
            generated_at=datetime.now(timezone.utc).isoformat(),
            model=getattr(self.generator, "model", "unknown"),
            total_time=f"{elapsed:.2f}s",
            source="llm+playwright" if validation_ok else "llm",
            mcp_validation_successful=validation_ok,
            stage=stage,
        )
        self.logger.info("[%s] Done in %s: %d scenario(s), %d compiled, %d error(s)",
                         run_id, metadata.total_time, len(outputs), len(compilations), len(errors))
        return PipelineResult(
            run_id=run_id,
            generation=LLMRunOutput(run_id=run_id, outputs=outputs, metadata=metadata),
            compilations=compilations,
            errors=errors,
        )

    def _options_for(self, index: int, total: int) -> CompileOptions:
        options = self.compile_options
        if total < 2 or not options.file_name:
            return options
        # One fixed file name per run would make every scenario overwrite the first.
        stem, dot, ext = options.file_name.rpartition(".")
        file_name = f"{stem}_{index + 1}.{ext}" if dot else f"{options.file_name}_{index + 1}"
        return options.model_copy(update={"file_name": file_name})

    def _cancelled(self, cancel_event: Optional[Event], run_id: str, stage: str, errors: List[StageError]) -> bool:
        if cancel_event is None or not cancel_event.is_set():
            return False
        error = RunCancelledError(f"Run {run_id} was cancelled during {stage}")
        self.logger.warning("[%s] %s", run_id, error.message)
        errors.append(StageError(stage=stage, kind=error.kind, message=error.message))
        return True

    def _check_cancelled(self, cancel_event: Optional[Event], run_id: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise RunCancelledError(f"Run {run_id} was cancelled")
