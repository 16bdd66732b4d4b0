import logging
from typing import Iterator, List, Tuple

from scenarioforge.driver.page import PageDriver
from scenarioforge.models.ir import SelectorStrategy, TestStep, ValidationOutcome
from scenarioforge.resolver import selectors

TARGET_NOT_FOUND = "target not found"
NO_STABLE_ALTERNATIVE = "no stable alternative found; keeping original selector"

# Priority order is load-bearing: first present attribute wins.
CLICK_TIERS = ("data-testid", "aria-label", "role", "text")
INPUT_TIERS = ("data-testid", "id", "aria-label")
DEFAULT_TIERS = ("data-testid", "aria-label", "role")

CLICK_ACTIONS = ("click", "hover")
INPUT_ACTIONS = ("fill", "type", "select")

_TIER_STRATEGY = {
    "data-testid": SelectorStrategy.DATA_TESTID,
    "aria-label": SelectorStrategy.ARIA_LABEL,
    "role": SelectorStrategy.ROLE,
    "text": SelectorStrategy.TEXT,
    "id": SelectorStrategy.CSS_FALLBACK,
}


def tiers_for(action: str) -> Tuple[str, ...]:
    if action in CLICK_ACTIONS:
        return CLICK_TIERS
    if action in INPUT_ACTIONS:
        return INPUT_TIERS
    return DEFAULT_TIERS


class SelectorStabilizer:
    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger(__name__)

    def stabilize(self, step: TestStep, page: PageDriver, step_index: int = 0) -> ValidationOutcome:
        target = step.target

        def outcome(resolved, final_target=target, strategy=SelectorStrategy.UNCHANGED, warning=None):
            return ValidationOutcome(
                step_index=step_index,
                resolved=resolved,
                original_target=target,
                final_target=final_target,
                strategy=strategy,
                warning=warning,
            )

        if not step.targets_element:
            return outcome(True)

        try:
            handle = page.query_selector(target)
            if handle is None:
                self.logger.warning("  - Could not resolve '%s' (%s)", target, step.description)
                return outcome(False, warning=TARGET_NOT_FOUND)

            if selectors.is_stable(target):
                self.logger.debug("  - '%s' already uses a stable dialect", target)
                return outcome(True)

            for tier, candidate in self._candidates(page, handle, tiers_for(step.action)):
                if tier == "id":
                    if candidate == target.strip():
                        return outcome(True)
                    self.logger.info("  - Resolved '%s' -> %s (element id)", target, candidate)
                    return outcome(True, candidate, SelectorStrategy.CSS_FALLBACK)
                self.logger.info("  - Resolved '%s' -> %s (%s)", target, candidate, tier)
                return outcome(True, candidate, _TIER_STRATEGY[tier])

            self.logger.info("  - No stable alternative for '%s'", target)
            return outcome(True, strategy=SelectorStrategy.CSS_FALLBACK, warning=NO_STABLE_ALTERNATIVE)

        except Exception as e:
            self.logger.warning("  - Could not validate '%s': %s", target, e)
            return outcome(False, warning=str(e) or e.__class__.__name__)

    def suggest(self, selector: str, page: PageDriver) -> List[str]:
        """Every stable alternative for ``selector``, best first. Empty when the element is absent."""
        handle = page.query_selector(selector)
        if handle is None:
            return []
        return [candidate for _, candidate in self._candidates(page, handle, CLICK_TIERS)]

    def _candidates(self, page: PageDriver, handle, tiers) -> Iterator[Tuple[str, str]]:
        # Lazy so stabilize() stops querying at the first hit.
        for tier in tiers:
            if tier == "text":
                candidate = selectors.text_selector(page.text_content(handle))
            else:
                value = page.get_attribute(handle, tier)
                candidate = self._format(tier, value) if value and value.strip() else None
            if candidate:
                yield tier, candidate

    def _format(self, tier: str, value: str) -> str:
        if tier == "data-testid":
            return selectors.testid_selector(value)
        if tier == "aria-label":
            return selectors.aria_label_selector(value)
        if tier == "role":
            return selectors.role_selector(value)
        return selectors.id_selector(value)
