"""
Selector validation tools for a host process (MCP-style tool calls).

Every tool is a read-only query against the current page; the transport
that carries the calls lives outside this package.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Literal, Tuple, Type

from pydantic import BaseModel, Field, ValidationError

from scenarioforge.driver.page import PageDriver
from scenarioforge.errors import ElementNotFoundError, SchemaValidationError, UnknownToolError
from scenarioforge.models.ir import Action, TestStep
from scenarioforge.resolver.stabilizer import SelectorStabilizer


class ToolName(str, Enum):
    VALIDATE_SELECTOR = "validate_selector"
    SUGGEST_STABLE_SELECTORS = "suggest_stable_selectors"
    GET_ELEMENT_TEXT = "get_element_text"
    GET_ELEMENT_ATTRIBUTES = "get_element_attributes"


DEFAULT_ATTRIBUTES = ["id", "data-testid", "aria-label", "role"]


class ValidateSelectorArgs(BaseModel):
    selector: str
    context: Literal["validation", "improvement", "testing"] = "validation"
    action: Action = "click"


class SuggestStableSelectorsArgs(BaseModel):
    selector: str


class GetElementTextArgs(BaseModel):
    selector: str


class GetElementAttributesArgs(BaseModel):
    selector: str
    attributes: List[str] = Field(default_factory=lambda: list(DEFAULT_ATTRIBUTES))


TOOL_DESCRIPTIONS = {
    ToolName.VALIDATE_SELECTOR: "Check that a selector matches an element on the page and propose a more stable one",
    ToolName.SUGGEST_STABLE_SELECTORS: "List stable selectors for an element, best first",
    ToolName.GET_ELEMENT_TEXT: "Get the trimmed text content of an element",
    ToolName.GET_ELEMENT_ATTRIBUTES: "Get attributes of an element (missing ones are null)",
}


class SelectorTools:
    def __init__(self, page: PageDriver, stabilizer: SelectorStabilizer = None, logger: logging.Logger = None):
        self.page = page
        self.logger = logger or logging.getLogger(__name__)
        self.stabilizer = stabilizer or SelectorStabilizer(logger=self.logger)
        self._handlers: Dict[ToolName, Tuple[Type[BaseModel], Callable[[Any], Dict[str, Any]]]] = {
            ToolName.VALIDATE_SELECTOR: (ValidateSelectorArgs, self.validate_selector),
            ToolName.SUGGEST_STABLE_SELECTORS: (SuggestStableSelectorsArgs, self.suggest_stable_selectors),
            ToolName.GET_ELEMENT_TEXT: (GetElementTextArgs, self.get_element_text),
            ToolName.GET_ELEMENT_ATTRIBUTES: (GetElementAttributesArgs, self.get_element_attributes),
        }

    def list_tools(self):
        return [
            {
                "name": name.value,
                "description": TOOL_DESCRIPTIONS[name],
                "inputSchema": args_model.model_json_schema(),
            }
            for name, (args_model, _) in self._handlers.items()
        ]

    def call(self, name: str, arguments: Dict[str, Any] = None) -> Dict[str, Any]:
        try:
            tool = ToolName(name)
        except ValueError:
            raise UnknownToolError(f"Unknown tool: {name}") from None

        args_model, handler = self._handlers[tool]
        try:
            args = args_model.model_validate(arguments or {})
        except ValidationError as e:
            raise SchemaValidationError(f"Invalid arguments for {tool.value}: {e}") from e
        self.logger.debug("Tool call %s(%s)", tool.value, args)
        return handler(args)

    def validate_selector(self, args: ValidateSelectorArgs) -> Dict[str, Any]:
        step = TestStep(action=args.action, target=args.selector, description=f"{args.context} via tool call")
        outcome = self.stabilizer.stabilize(step, self.page)
        result = {"isValid": outcome.resolved, "strategy": outcome.strategy.value}
        if outcome.final_target != args.selector:
            result["improvedSelector"] = outcome.final_target
        if outcome.warning:
            result["warning"] = outcome.warning
        return result

    def suggest_stable_selectors(self, args: SuggestStableSelectorsArgs) -> Dict[str, Any]:
        try:
            suggestions = self.stabilizer.suggest(args.selector, self.page)
        except Exception as e:
            self.logger.warning("Could not suggest stable selectors for '%s': %s", args.selector, e)
            suggestions = []
        return {"selector": args.selector, "suggestions": suggestions}

    def get_element_text(self, args: GetElementTextArgs) -> Dict[str, Any]:
        handle = self._element(args.selector)
        text = self.page.text_content(handle)
        return {"selector": args.selector, "textContent": (text or "").strip()}

    def get_element_attributes(self, args: GetElementAttributesArgs) -> Dict[str, Any]:
        handle = self._element(args.selector)
        attributes = {name: self.page.get_attribute(handle, name) for name in args.attributes}
        return {"selector": args.selector, "attributes": attributes}

    def _element(self, selector: str):
        handle = self.page.query_selector(selector)
        if handle is None:
            raise ElementNotFoundError(f"Element with selector '{selector}' not found")
        return handle
