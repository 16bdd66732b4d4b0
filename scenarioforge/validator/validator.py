import logging
from contextlib import closing
from typing import Optional

from scenarioforge.driver.page import PageDriver, PageProvider
from scenarioforge.errors import NavigationError
from scenarioforge.models.ir import TestScenario, TestStep, ValidationOutcome, ValidationReport
from scenarioforge.resolver.stabilizer import SelectorStabilizer

SIDE_EFFECT_ACTIONS = ("click", "fill", "type", "select", "hover")


class ScenarioValidator:
    """
    Validates a scenario's steps against a live page, in execution order.

    Each interactive step is replayed on the page before the next step is
    checked, so a selector that only exists after an earlier click (a
    dialog, a second form page) is validated against the right DOM.
    """

    def __init__(self, stabilizer: SelectorStabilizer = None, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger(__name__)
        self.stabilizer = stabilizer or SelectorStabilizer(logger=self.logger)

    def validate(self, scenario: TestScenario, url: str, provider: PageProvider) -> ValidationReport:
        self.logger.info("Validating selectors for '%s' at %s", scenario.name, url)
        try:
            page = provider.open_page()
        except Exception as e:
            raise NavigationError(f"Could not open a page for {url}: {e}") from e

        with closing(page):
            try:
                page.goto(url)
            except Exception as e:
                raise NavigationError(f"Failed to navigate to {url}: {e}") from e

            validated = scenario.model_copy(deep=True)
            outcomes = []
            for index, step in enumerate(validated.steps):
                outcome = self._validate_step(step, index, page)
                step.target = outcome.final_target
                outcomes.append(outcome)

        self.logger.info("Validated %d/%d steps for '%s'",
                         sum(1 for o in outcomes if o.resolved), len(outcomes), scenario.name)
        return ValidationReport(scenario=validated, outcomes=outcomes)

    def _validate_step(self, step: TestStep, index: int, page: PageDriver) -> ValidationOutcome:
        try:
            outcome = self.stabilizer.stabilize(step, page, step_index=index)
        except Exception as e:
            self.logger.warning("Could not validate step %d (%s): %s", index + 1, step.description, e)
            return ValidationOutcome(
                step_index=index,
                resolved=False,
                original_target=step.target,
                final_target=step.target,
                warning=str(e) or e.__class__.__name__,
            )

        if step.requires_data and step.data is None:
            note = f"missing data for '{step.action}' step"
            outcome.warning = f"{outcome.warning}; {note}" if outcome.warning else note
            return outcome

        if outcome.resolved and step.action in SIDE_EFFECT_ACTIONS:
            error = self._perform(step, page)
            if error:
                note = f"interaction failed: {error}"
                outcome.warning = f"{outcome.warning}; {note}" if outcome.warning else note
        return outcome

    def _perform(self, step: TestStep, page: PageDriver) -> Optional[str]:
        # Replays against the selector that was just resolved, not the rewrite.
        selector = step.target
        try:
            if step.action == "click":
                page.click(selector)
            elif step.action in ("fill", "type"):
                page.fill(selector, step.data)
            elif step.action == "select":
                page.select_option(selector, step.data)
            elif step.action == "hover":
                page.hover(selector)
        except Exception as e:
            self.logger.warning("  - %s on '%s' failed: %s", step.action, selector, e)
            return str(e) or e.__class__.__name__
        return None
