"""
Records passed between the form parser, planner, generator and status tracker.

Wire names are the camelCase keys the business form posts (``businessName``);
attributes are snake_case. Both spellings are accepted on input.
"""

from datetime import datetime, timezone
from enum import Enum
import re

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


HEX_COLOR_RE = re.compile(r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

# Language code -> (display name, locale)
KNOWN_LANGUAGES = {
    "he": ("Hebrew", "he-IL"),
    "ar": ("Arabic", "ar"),
    "en": ("English", "en-US"),
    "fr": ("French", "fr-FR"),
    "es": ("Spanish", "es-ES"),
    "de": ("German", "de-DE"),
    "ru": ("Russian", "ru-RU"),
}
RTL_LANGUAGES = {"he", "ar"}


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BusinessProfile(_WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    # Basic business information
    business_name: str = Field(min_length=1)
    business_type: str = Field(min_length=2)
    industry: str = Field(min_length=2)
    business_size: str = "small"
    description: str = Field(min_length=10)
    language: str = "he"

    # Design
    primary_color: str
    secondary_color: str
    typography_style: str = "modern"
    animation_preference: str = "subtle"
    design_styles: list[str] = Field(default_factory=list)

    # Content
    headline: str = ""
    description_text: str = ""
    cta_text: str = ""
    tagline: str = ""
    form_fields: list[str] = Field(default_factory=lambda: ["name", "phone", "email", "message"])

    # Website options
    include_testimonials: bool = False
    include_faq: bool = Field(default=False, alias="includeFAQ")
    has_products: bool = False
    has_services: bool = False
    has_portfolio: bool = False
    needs_booking_system: bool = False

    # SEO
    meta_keywords: list[str] = Field(default_factory=list)
    meta_description: str = ""

    @field_validator("business_name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Business name must not be empty")
        return value

    @field_validator("primary_color", "secondary_color")
    @classmethod
    def _hex_color(cls, value: str) -> str:
        value = value.strip()
        if not HEX_COLOR_RE.match(value):
            raise ValueError("Color must be a hex value like #RGB or #RRGGBB")
        return value

    @field_validator("language")
    @classmethod
    def _known_language(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in KNOWN_LANGUAGES:
            raise ValueError(f"Language must be one of: {', '.join(sorted(KNOWN_LANGUAGES))}")
        return value

    @property
    def is_rtl(self) -> bool:
        return self.language in RTL_LANGUAGES

    @property
    def direction(self) -> str:
        return "rtl" if self.is_rtl else "ltr"

    @property
    def language_name(self) -> str:
        return KNOWN_LANGUAGES[self.language][0]

    @property
    def locale(self) -> str:
        return KNOWN_LANGUAGES[self.language][1]


class ComponentPlan(_WireModel):
    name: str = Field(min_length=1)
    type: str = "section"
    description: str = ""
    priority: int = 0
    prompt: str = Field(min_length=1)
    refinement: str | None = None


class SiteTheme(_WireModel):
    primary_color: str
    secondary_color: str
    language: str


class SitePlan(_WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    business_name: str
    business_type: str
    industry: str
    theme: SiteTheme
    components: tuple[ComponentPlan, ...]

    def sorted_components(self) -> list[ComponentPlan]:
        """Components in generation order: ascending priority, ties keep plan order."""
        return sorted(self.components, key=lambda c: c.priority)


class Dependency(_WireModel):
    name: str = Field(min_length=1)
    version: str = Field(min_length=1)


class GeneratedComponent(_WireModel):
    name: str
    code: str
    dependencies: list[Dependency] = Field(default_factory=list)
    path: str
    fallback_used: bool = False
    attempts: int = 1


class ComponentState(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"


class ComponentStatus(_WireModel):
    name: str
    type: str
    status: ComponentState = ComponentState.pending
    error: str | None = None
    description: str | None = None
    fallback_used: bool = False


class GenerationCounts(_WireModel):
    total: int = 0
    completed: int = 0
    failed: int = 0
    progress: int = 0

    @classmethod
    def compute(cls, total: int, completed: int, failed: int) -> "GenerationCounts":
        if completed < 0 or failed < 0 or completed + failed > total:
            raise ValueError(
                f"Inconsistent counts: completed={completed} failed={failed} total={total}"
            )
        progress = round(completed / total * 100) if total else 0
        return cls(total=total, completed=completed, failed=failed, progress=progress)


class ProjectState(_WireModel):
    project_dir: str
    status: GenerationCounts
    components: list[ComponentStatus]
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TokenUsage(_WireModel):
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0
    requests: int = 0

    def record(self, input_tokens: int, output_tokens: int) -> None:
        self.total_input_tokens += input_tokens
        self.total_output_tokens += output_tokens
        self.total_tokens += input_tokens + output_tokens
        self.requests += 1

    def reset(self) -> None:
        self.total_input_tokens = 0
        self.total_output_tokens = 0
        self.total_tokens = 0
        self.requests = 0


class ComponentResult(GeneratedComponent):
    description: str = ""
    type: str = "section"
    priority: int = 0
    status: ComponentState = ComponentState.completed
    error: str | None = None


class GenerationResult(_WireModel):
    success: bool
    project_dir: str
    project_path: str
    site_plan: SitePlan
    components: list[ComponentResult]
    status: GenerationCounts
    token_usage: TokenUsage
    deployed_url: str | None = None
    deployment_error: str | None = None
