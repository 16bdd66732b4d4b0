class ScenarioForgeError(Exception):
    """Base class for every error the pipeline surfaces to callers."""

    kind = "ScenarioForgeError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class GenerationError(ScenarioForgeError):
    """The generation call failed or returned text with no parsable JSON."""

    kind = "GenerationError"


class SchemaValidationError(ScenarioForgeError):
    """Parsed JSON does not match the draft scenario shape."""

    kind = "SchemaValidationError"


class NavigationError(ScenarioForgeError):
    """The initial page load of a validation call failed."""

    kind = "NavigationError"


class CompilationInputError(ScenarioForgeError):
    """A scenario cannot be compiled because a step lacks required data."""

    kind = "CompilationInputError"

    def __init__(self, message: str, step_indices=None):
        super().__init__(message)
        self.step_indices = list(step_indices or [])


class RunCancelledError(ScenarioForgeError):
    kind = "RunCancelledError"


class UnknownToolError(ScenarioForgeError):
    kind = "UnknownToolError"


class ElementNotFoundError(ScenarioForgeError):
    """A tool call named a selector that matches nothing on the page."""

    kind = "ElementNotFoundError"


class StepResolutionWarning(UserWarning):
    """Per-step selector resolution problem. Recorded on outcomes, never raised."""

    kind = "StepResolutionWarning"
