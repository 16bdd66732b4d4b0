import json
from typing import Dict, List, Literal, NamedTuple, Optional, Sequence, Tuple

from pydantic import BaseModel

from scenarioforge.compiler import naming
from scenarioforge.errors import CompilationInputError
from scenarioforge.models.ir import (
    CompilationArtifact,
    CompiledIR,
    IRCase,
    IRStep,
    PageObject,
    TestScenario,
    TestStep,
    ValidationOutcome,
)
from scenarioforge.resolver import selectors
from scenarioforge.resolver.selectors import SelectorKind

HEADER = "# Generated by scenarioforge. Do not edit by hand."
IMPORTS = "from playwright.sync_api import Page, expect"

# fill and type write the same field and share one page-object method.
ACTION_FAMILIES = {"type": "fill"}


def action_family(action: str) -> str:
    return ACTION_FAMILIES.get(action, action)


class FactoredMethod(NamedTuple):
    name: str
    actions: Tuple[str, ...]

    @property
    def mixed_input(self) -> bool:
        return len(self.actions) > 1


class CompileOptions(BaseModel):
    file_name: Optional[str] = None
    suite_id: Optional[str] = None
    emit_page_objects: bool = True
    selector_strategy: Literal["locator", "role-first"] = "locator"


def _q(value: str) -> str:
    return json.dumps(value)


def _comment(text: str) -> str:
    return " ".join(str(text).split())


class Compiler:
    """
    Turns a validated scenario into a pytest-playwright test module.

    Output is a pure function of the scenario, the options and the
    validation outcomes: no clock, no randomness, ordered iteration only.
    """

    def compile(self, scenario: TestScenario, options: CompileOptions = None,
                outcomes: Sequence[ValidationOutcome] = None) -> CompilationArtifact:
        options = options or CompileOptions()
        missing = scenario.steps_missing_data()
        if missing:
            listed = ", ".join(str(i + 1) for i in missing)
            raise CompilationInputError(
                f"Scenario '{scenario.name}' has steps without required data: {listed}", missing
            )

        base_name = naming.unique_module_name(scenario.name)
        test_file_name = naming.sanitize_file_name(options.file_name, f"test_{base_name}.py")
        suite_id = naming.sanitize_identifier(
            options.suite_id, naming.sanitize_identifier(f"suite_{scenario.id}", "suite")
        )
        warnings = self._warnings_by_step(outcomes)

        methods = self._factor(scenario.steps) if options.emit_page_objects else {}
        page_objects = []
        po_module = po_class = None
        if methods:
            po_module = f"{base_name}_page"
            po_class = naming.class_name(base_name, "Page")
            page_objects.append(PageObject(
                name=po_module,
                source=self._page_object_source(scenario, po_class, methods, options),
            ))

        lines = [
            HEADER,
            f"# Suite: {_comment(suite_id)}",
            f"# Scenario: {_comment(scenario.name)} ({_comment(scenario.id)})",
        ]
        if scenario.tags:
            lines.append(f"# Tags: {_comment(', '.join(scenario.tags))}")
        lines.append(IMPORTS)
        if po_module:
            lines.append("")
            lines.append(f"from {po_module} import {po_class}")
        lines.append("")
        lines.append("")
        lines.append(f"def test_{naming.module_name(scenario.name)}(page: Page):")
        if scenario.description:
            lines.append(f"    # {_comment(scenario.description)}")
        if po_module:
            lines.append(f"    {po_module} = {po_class}(page)")

        for index, step in enumerate(scenario.steps):
            lines.append(f"    # Step {index + 1}: {step.action} {_comment(step.description or step.target)}")
            for warning in warnings.get(index, []):
                lines.append(f"    # WARNING: {_comment(warning)}")
            method = methods.get((step.target, action_family(step.action)))
            if method:
                args = [_q(step.data)] if step.requires_data else []
                if method.mixed_input and step.action == "type":
                    args.append("sequentially=True")
                lines.append(f"    {po_module}.{method.name}({', '.join(args)})")
            else:
                value = _q(step.data) if step.requires_data else None
                lines.append(f"    {self._step_code(step, 'page', value, options)}")

        if not scenario.steps:
            lines.append("    pass")

        return CompilationArtifact(
            test_file_name=test_file_name,
            suite_id=suite_id,
            page_objects=page_objects,
            test_source="\n".join(lines) + "\n",
        )

    def _warnings_by_step(self, outcomes) -> Dict[int, List[str]]:
        warnings = {}
        for outcome in outcomes or []:
            if outcome.warning:
                warnings.setdefault(outcome.step_index, []).append(outcome.warning)
            elif not outcome.resolved:
                warnings.setdefault(outcome.step_index, []).append("target could not be resolved")
        return warnings

    def _factor(self, steps: Sequence[TestStep]) -> Dict[Tuple[str, str], "FactoredMethod"]:
        """Name one page-object method per (target, action family) used more than once."""
        groups: Dict[Tuple[str, str], List[str]] = {}
        for step in steps:
            if step.targets_element:
                groups.setdefault((step.target, action_family(step.action)), []).append(step.action)

        methods = {}
        taken = set()
        for (target, family), actions in groups.items():
            if len(actions) < 2:
                continue
            first = actions[0]
            slug = naming.slugify(target)
            name = f"{first}_{slug}" if slug else f"{first}_element_{len(methods) + 1}"
            candidate, n = name, 2
            while candidate in taken:
                candidate = f"{name}_{n}"
                n += 1
            taken.add(candidate)
            methods[(target, family)] = FactoredMethod(candidate, tuple(dict.fromkeys(actions)))
        return methods

    def _page_object_source(self, scenario, class_name, methods, options) -> str:
        lines = [
            HEADER,
            f"# Page object for scenario: {_comment(scenario.name)}",
            IMPORTS,
            "",
            "",
            f"class {class_name}:",
            "    def __init__(self, page: Page):",
            "        self.page = page",
        ]
        for (target, _), method in methods.items():
            lines.append("")
            if method.mixed_input:
                lines.extend([
                    f"    def {method.name}(self, value: str, sequentially: bool = False):",
                    f"        locator = {self._locator(target, 'self.page', options.selector_strategy)}",
                    "        if sequentially:",
                    "            locator.press_sequentially(value)",
                    "        else:",
                    "            locator.fill(value)",
                ])
                continue
            step = TestStep(action=method.actions[0], target=target)
            params = ", value: str" if step.requires_data else ""
            value = "value" if step.requires_data else None
            lines.append(f"    def {method.name}(self{params}):")
            lines.append(f"        {self._step_code(step, 'self.page', value, options)}")
        return "\n".join(lines) + "\n"

    def _step_code(self, step: TestStep, base: str, value: Optional[str], options: CompileOptions) -> str:
        if step.action == "goto":
            return f"{base}.goto({_q(step.target)})"
        if step.action == "wait" and not step.targets_element:
            return f"{base}.wait_for_timeout({int(step.target.strip())})"

        loc = self._locator(step.target, base, options.selector_strategy)
        if step.action == "fill":
            return f"{loc}.fill({value})"
        if step.action == "type":
            return f"{loc}.press_sequentially({value})"
        if step.action == "select":
            return f"{loc}.select_option({value})"
        if step.action == "click":
            return f"{loc}.click()"
        if step.action == "hover":
            return f"{loc}.hover()"
        if step.action == "expect":
            return f"expect({loc}).to_be_visible()"
        return f"{loc}.wait_for()"

    def _locator(self, target: str, base: str, strategy: str) -> str:
        if strategy == "role-first":
            kind = selectors.classify_selector(target)
            if kind == SelectorKind.ROLE:
                role, name = selectors.parse_role(target)
                role = role or selectors.attribute_value(target)
                if role and name:
                    return f"{base}.get_by_role({_q(role)}, name={_q(name)})"
                if role:
                    return f"{base}.get_by_role({_q(role)})"
            elif kind == SelectorKind.TEXT:
                text = target.strip()[len("text="):]
                if len(text) > 1 and text[0] == text[-1] and text[0] in "\"'":
                    return f"{base}.get_by_text({_q(text[1:-1])}, exact=True)"
                return f"{base}.get_by_text({_q(text)})"
            elif kind == SelectorKind.TEST_ID and selectors.attribute_value(target):
                return f"{base}.get_by_test_id({_q(selectors.attribute_value(target))})"
            elif kind == SelectorKind.ARIA_LABEL and selectors.attribute_value(target):
                return f"{base}.get_by_label({_q(selectors.attribute_value(target))})"
        return f"{base}.locator({_q(target)})"


def compile_ir(scenario: TestScenario, suite_id: str) -> CompiledIR:
    steps = []
    for step in scenario.steps:
        if step.action == "goto":
            steps.append(IRStep(type=step.action, url=step.target, value=step.data))
        else:
            steps.append(IRStep(type=step.action, selector=step.target, value=step.data))
    return CompiledIR(suite_id=suite_id, cases=[IRCase(id=scenario.id, name=scenario.name, steps=steps)])
