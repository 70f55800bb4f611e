"""
Section planner — asks Claude for the list of sections this business needs.

One model call per plan, no retries. The reply is normalized into a SitePlan;
anything that cannot be normalized fails the whole request with PlanError.
"""

import logging

from pydantic import ValidationError

from sitegen.config import Settings
from sitegen.errors import ModelError, PlanError
from sitegen.llm_client import ModelClient, parse_json_object
from sitegen.models import BusinessProfile, ComponentPlan, SitePlan, SiteTheme, TokenUsage
from sitegen.section_generator import clean_file_name


logger = logging.getLogger(__name__)


# Section type → component name mapping
TYPE_TO_COMPONENT = {
    "navbar": "Navbar",
    "header": "Navbar",
    "hero": "HeroSection",
    "features": "Features",
    "services": "ServicesList",
    "products": "ProductsGrid",
    "portfolio": "Portfolio",
    "booking": "BookingForm",
    "pricing": "Pricing",
    "testimonials": "Testimonials",
    "faq": "FAQ",
    "cta": "CallToAction",
    "contact": "ContactForm",
    "footer": "Footer",
    "stats": "Stats",
    "team": "Team",
    "about": "About",
    "gallery": "Gallery",
}


PLAN_SYSTEM_PROMPT = """You are a Next.js website planning expert. You design landing pages as an ordered list of self-contained React section components.

Plan ONLY the sections this specific business needs. Do not fall back to a fixed template: the number, kind and order of sections must follow from the business information you are given.

Return ONLY a JSON object, no markdown fences, no explanation."""


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def build_plan_prompt(profile: BusinessProfile) -> str:
    """Build the planning prompt embedding every profile field."""
    required = []
    excluded = []
    for flag, section in (
        (profile.include_testimonials, "testimonials"),
        (profile.include_faq, "FAQ"),
        (profile.has_products, "products"),
        (profile.has_services, "services"),
        (profile.has_portfolio, "portfolio"),
        (profile.needs_booking_system, "booking"),
    ):
        (required if flag else excluded).append(section)

    styles = ", ".join(profile.design_styles) or "none selected"
    return f"""You are designing a site plan for a {profile.business_type} in the {profile.industry} industry.

BUSINESS INFORMATION:
- Name: {profile.business_name}
- Business Type: {profile.business_type}
- Industry: {profile.industry}
- Size: {profile.business_size}
- Description: {profile.description}
- Tagline: {profile.tagline or "-"}
- Has Products: {_yes_no(profile.has_products)}
- Has Services: {_yes_no(profile.has_services)}
- Has Portfolio: {_yes_no(profile.has_portfolio)}
- Needs Booking System: {_yes_no(profile.needs_booking_system)}
- Testimonials: {_yes_no(profile.include_testimonials)}
- FAQ: {_yes_no(profile.include_faq)}

DESIGN PREFERENCES:
- Language: {profile.language_name} ({profile.direction.upper()})
- Primary Color: {profile.primary_color}
- Secondary Color: {profile.secondary_color}
- Typography Style: {profile.typography_style}
- Animation Preference: {profile.animation_preference}
- Design Styles: {styles}

CONTENT REQUIREMENTS:
- Headline: {profile.headline or "-"}
- Description Text: {profile.description_text or "-"}
- CTA Text: {profile.cta_text or "-"}
- Form Fields: {", ".join(profile.form_fields) or "-"}
- Meta Keywords: {", ".join(profile.meta_keywords) or "-"}
- Meta Description: {profile.meta_description or "-"}

SECTION RULES:
- Must include: {", ".join(required) or "nothing beyond what the business needs"}
- Must NOT include: {", ".join(excluded) or "no restrictions"}

For each component, provide:
1. "name": a unique PascalCase component name (e.g. "HeroSection", "ServicesList")
2. "type": the section type (e.g. "hero", "features", "testimonials")
3. "description": the purpose of the component
4. "priority": an integer, lower number = higher on the page
5. "prompts": {{"main": "<detailed instructions for generating this component>"}}

RETURN FORMAT:
{{"components": [
  {{
    "name": "HeroSection",
    "type": "hero",
    "description": "Main hero section with headline and call to action",
    "priority": 1,
    "prompts": {{"main": "Create a hero section with a strong headline, subheadline and a prominent call-to-action button."}}
  }}
]}}"""


def _with_suffix(name: str, count: int) -> str:
    head, _, base = name.rpartition("/")
    stem, dot, ext = base.partition(".")
    return f"{head}{'/' if head else ''}{stem}{count}{dot}{ext}"


def _get_component_name(raw_name: str | None, sec_type: str, index: int, used_names: dict) -> str:
    """
    Get a unique component name, deriving one from the type when missing.

    Names are compared case-insensitively on their cleaned path, so "Hero",
    "hero" and "components/Hero" never share a file.
    """
    base_name = (raw_name or "").strip() or TYPE_TO_COMPONENT.get(sec_type, f"Section{index + 1}")

    name = base_name
    count = 1
    while clean_file_name(name).lower() in used_names:
        count += 1
        name = _with_suffix(base_name, count)
    used_names[clean_file_name(name).lower()] = name
    return name


def _coerce_priority(value, fallback: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return fallback


def normalize_components(raw_components: list) -> list[ComponentPlan]:
    """Turn raw model entries into ComponentPlans with unique names and non-empty prompts."""
    planned = []
    used_names: dict = {}

    for i, raw in enumerate(raw_components):
        if not isinstance(raw, dict):
            raise PlanError(f"Component entry {i} is not an object")

        sec_type = str(raw.get("type") or "section").strip().lower()
        name = _get_component_name(raw.get("name"), sec_type, i, used_names)
        description = str(raw.get("description") or "").strip()

        prompts = raw.get("prompts")
        prompt = ""
        refinement = None
        if isinstance(prompts, dict):
            prompt = str(prompts.get("main") or "").strip()
            refinement = prompts.get("refinement") or None
        elif isinstance(raw.get("prompt"), str):
            prompt = raw["prompt"].strip()
        if not prompt:
            prompt = f"Create a {sec_type} section. {description}".strip()

        try:
            planned.append(ComponentPlan(
                name=name,
                type=sec_type,
                description=description,
                priority=_coerce_priority(raw.get("priority"), i + 1),
                prompt=prompt,
                refinement=refinement,
            ))
        except ValidationError as e:
            raise PlanError(f"Component entry {i} is invalid: {e}") from e

    return planned


async def plan_site(
    profile: BusinessProfile,
    client: ModelClient,
    settings: Settings,
    usage: TokenUsage | None = None,
) -> SitePlan:
    """
    Produce a SitePlan for the profile with exactly one model call.

    Raises ModelError (categorized upstream failure) or PlanError (unusable output).
    """
    logger.info(f"[plan] Planning site for {profile.business_name}")
    try:
        raw = await client.complete(
            build_plan_prompt(profile),
            system=PLAN_SYSTEM_PROMPT,
            max_tokens=settings.plan_max_tokens,
            usage=usage,
        )
    except ModelError as e:
        logger.error(f"[plan] Model call failed ({e.category.value}): {e.message}")
        raise

    try:
        data = parse_json_object(raw)
    except ValueError as e:
        raise PlanError(f"Plan is not valid JSON: {e}") from e

    raw_components = data.get("components")
    if not isinstance(raw_components, list):
        raise PlanError("Plan has no 'components' array")
    if not raw_components:
        raise PlanError("Plan contains no components")

    components = normalize_components(raw_components)
    plan = SitePlan(
        business_name=profile.business_name,
        business_type=profile.business_type,
        industry=profile.industry,
        theme=SiteTheme(
            primary_color=profile.primary_color,
            secondary_color=profile.secondary_color,
            language=profile.language,
        ),
        components=tuple(components),
    )

    logger.info(
        f"[plan] {len(plan.components)} components: "
        + ", ".join(f"{c.name} ({c.type}, p{c.priority})" for c in plan.sorted_components())
    )
    return plan
