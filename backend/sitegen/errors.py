"""
Error taxonomy for the generator.

Model failures carry an explicit category so the HTTP layer never has to
inspect error text. Filesystem failures are fatal to a generation request;
everything else about a single component is contained by the pipeline.
"""

from enum import Enum


class ErrorCategory(str, Enum):
    quota = "quota"
    auth = "auth"
    service = "service"
    invalid_output = "invalid_output"
    generic = "generic"


# category -> (default HTTP status, user-facing message)
CATEGORY_RESPONSES = {
    ErrorCategory.quota: (429, "Model quota exceeded. Check your Anthropic billing and rate limits."),
    ErrorCategory.auth: (401, "Model authentication failed. Check your Anthropic API key."),
    ErrorCategory.service: (503, "The model service is temporarily unavailable. Please try again later."),
    ErrorCategory.invalid_output: (500, "The model returned output that could not be used."),
    ErrorCategory.generic: (500, "The model request failed."),
}


class SiteGenError(Exception):
    """Base class for all generator errors."""


class ModelError(SiteGenError):
    def __init__(self, category: ErrorCategory, message: str, status_code: int | None = None):
        super().__init__(message)
        self.category = category
        self.message = message
        self.status_code = status_code or CATEGORY_RESPONSES[category][0]

    @property
    def user_message(self) -> str:
        return CATEGORY_RESPONSES[self.category][1]

    def to_response(self) -> dict:
        return {"error": self.user_message, "details": self.message}


class PlanError(ModelError):
    """The planner could not turn the model output into a usable SitePlan."""
    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.invalid_output):
        super().__init__(category, message)


class ProjectFileError(SiteGenError):
    """A filesystem operation on the generated project failed."""
    def __init__(self, operation: str, path: str, cause: Exception | None = None):
        detail = f"{operation} failed for {path}"
        if cause is not None:
            detail += f": {cause}"
        super().__init__(detail)
        self.operation = operation
        self.path = str(path)
        self.cause = cause

    def to_response(self) -> dict:
        return {
            "error": "Project filesystem operation failed",
            "details": {"operation": self.operation, "path": self.path, "message": str(self.cause or "")},
        }


class ComponentGenerationError(SiteGenError):
    """Every model attempt failed for a file the fallback template cannot stand in for."""


class DeploymentError(SiteGenError):
    pass


class DevServerError(SiteGenError):
    pass
