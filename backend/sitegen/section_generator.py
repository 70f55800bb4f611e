"""
Section generator — generates ONE component per Claude call.

For each planned component:
  1. resolve file name, extension and target directory from its name
  2. ask Claude for {"code", "dependencies"}, retrying with exponential backoff
  3. fall back to a deterministic template once attempts are exhausted
     (section components only; other files fail the component)
  4. write the file, merge dependencies into package.json, patch page.tsx
"""

import asyncio
from dataclasses import dataclass
import json
import logging
import os
import re
import time

from sitegen.code_validator import check_component, ensure_client_directive, format_warnings
from sitegen.config import Settings
from sitegen.errors import ComponentGenerationError, ProjectFileError
from sitegen.llm_client import ModelClient, parse_json_object, strip_code_fences
from sitegen.models import BusinessProfile, ComponentPlan, Dependency, GeneratedComponent, TokenUsage
from sitegen.page_patcher import patch_page


logger = logging.getLogger(__name__)


SECTION_SYSTEM_PROMPT = """You are a Next.js expert developer generating ONE React component at a time for a landing page.

## Rules
1. Use TypeScript with proper types and interfaces.
2. Use Tailwind CSS for styling (already installed). Theme colors are available as `bg-primary`, `text-primary`, `bg-secondary`, `text-secondary`.
3. Use semantic HTML, responsive layouts (`sm:`, `md:`, `lg:`) and accessible markup.
4. Use `className` (not `class`) and self-close void elements (`<img />`, `<br />`).
5. Start with `'use client';` if the component uses hooks, events, or browser APIs.
6. The component must `export default` a function that takes no required props.

## Output Format
Return ONLY a JSON object:
{"code": "<complete file content>", "dependencies": [{"name": "<npm package>", "version": "<semver range>"}]}
List only npm packages the code imports that are not react, react-dom, next, tailwindcss or framer-motion.
No markdown fences. No explanation."""


# Design-style id -> directive appended to the component prompt
STYLE_DIRECTIVES = {
    "minimalist": "Minimalist: generous whitespace, restrained palette, few decorative elements, clear typographic hierarchy.",
    "brutalist": "Brutalist: raw blocky layout, thick borders, hard shadows, oversized type, no gradients.",
    "glassmorphism": "Glassmorphism: translucent cards with backdrop blur, soft borders, layered depth over colorful backgrounds.",
    "neumorphism": "Neumorphism: soft extruded surfaces using paired light and dark shadows on a muted background.",
    "retro": "Retro: vintage color accents, rounded display fonts, playful badges and textured backgrounds.",
    "corporate": "Corporate: structured grid, conservative palette, trust signals and clear calls to action.",
    "playful": "Playful: bright accents, rounded shapes, bouncy micro-animations and friendly copy.",
    "luxury": "Luxury: dark or neutral backgrounds, refined serif headings, thin dividers and subtle gold accents.",
    "dark": "Dark mode: dark surfaces, high-contrast text and glowing accent colors.",
    "gradient": "Gradient: bold multi-stop gradients on backgrounds and buttons with smooth transitions.",
}

# Next.js special files that belong in src/app
APP_FILE_NAMES = {"layout", "page", "loading", "error", "not-found", "template"}

_STRIP_PREFIXES = ("src/", "app/", "components/")

DEFAULT_CTA = {"he": "צור קשר", "ar": "اتصل بنا"}


@dataclass
class ComponentPath:
    file_name: str   # cleaned planned name, relative to its subtree (e.g. "ui/Button")
    extension: str
    target_dir: str  # absolute directory the file is written to
    file_path: str   # absolute file path
    identifier: str  # JS identifier used for import and render
    in_components: bool

    @property
    def import_path(self) -> str:
        module = self.file_name
        if "." in module.rsplit("/", 1)[-1]:
            module = module.rsplit(".", 1)[0]
        return f"../components/{module}"


def clean_file_name(name: str) -> str:
    """Strip known prefixes and unsafe path segments from a planned component name."""
    name = name.strip().replace("\\", "/").lstrip("/")
    stripped = True
    while stripped:
        stripped = False
        for prefix in _STRIP_PREFIXES:
            if name.startswith(prefix):
                name = name[len(prefix):]
                stripped = True
    segments = []
    for segment in name.split("/"):
        segment = re.sub(r"[^A-Za-z0-9_.\-]", "", segment)
        if segment and segment not in (".", ".."):
            segments.append(segment)
    return "/".join(segments) or "Section"


def get_file_extension(file_name: str) -> str:
    base = file_name.rsplit("/", 1)[-1]
    if "." in base:
        return ""
    if "css" in base.lower():
        return ".css"
    # PascalCase names are components even when they end in "ts" (e.g. "Highlights")
    if base.endswith("ts") and not base[:1].isupper():
        return ".ts"
    return ".tsx"


def to_identifier(file_name: str) -> str:
    """PascalCase JS identifier from the last path segment."""
    base = file_name.rsplit("/", 1)[-1].split(".", 1)[0]
    parts = [p for p in re.split(r"[^A-Za-z0-9]+", base) if p]
    identifier = "".join(p[:1].upper() + p[1:] for p in parts)
    if not identifier:
        return "Section"
    if identifier[0].isdigit():
        identifier = f"Section{identifier}"
    return identifier


def get_target_directory(file_name: str, project_path: str) -> str:
    base = file_name.rsplit("/", 1)[-1].split(".", 1)[0].lower()
    src = os.path.join(project_path, "src")

    if base in APP_FILE_NAMES:
        return os.path.join(src, "app")
    if "/" in file_name:
        dir_path = file_name.rsplit("/", 1)[0]
        if file_name.startswith(("styles/", "lib/", "utils/")):
            return os.path.join(src, *dir_path.split("/"))
        # ui/ and any other nested path live under components
        return os.path.join(src, "components", *dir_path.split("/"))
    return os.path.join(src, "components")


def resolve_component_path(name: str, project_path: str) -> ComponentPath:
    file_name = clean_file_name(name)
    extension = get_file_extension(file_name)
    target_dir = get_target_directory(file_name, project_path)
    base = file_name.rsplit("/", 1)[-1]
    file_path = os.path.join(target_dir, base + extension)
    components_root = os.path.join(project_path, "src", "components")
    in_components = (
        os.path.commonpath([components_root, target_dir]) == components_root
        and file_path.endswith((".tsx", ".jsx"))
    )
    return ComponentPath(
        file_name=file_name,
        extension=extension,
        target_dir=target_dir,
        file_path=file_path,
        identifier=to_identifier(file_name),
        in_components=in_components,
    )


def build_style_prompt(design_styles: list[str]) -> str:
    lines = []
    for style in design_styles:
        directive = STYLE_DIRECTIVES.get(style.strip().lower())
        lines.append(f"- {directive or style}")
    return "\n".join(lines)


def build_component_prompt(plan: ComponentPlan, profile: BusinessProfile, identifier: str) -> str:
    direction = "RTL (right-to-left)" if profile.is_rtl else "LTR (left-to-right)"
    task = plan.prompt or (
        f"Make it professional, modern and aligned with current best practices for a {profile.business_type}."
    )
    text = (
        f"BUSINESS INFORMATION:\n"
        f"- Business Name: {profile.business_name}\n"
        f"- Business Type: {profile.business_type}\n"
        f"- Industry: {profile.industry}\n"
        f"- Size: {profile.business_size}\n"
        f"- Description: {profile.description}\n"
        f"- Language: {profile.language_name} ({direction})\n"
        f"- Primary Color: {profile.primary_color}\n"
        f"- Secondary Color: {profile.secondary_color}\n"
        f"- Typography Style: {profile.typography_style}\n"
        f"- Animation Preference: {profile.animation_preference}\n"
        f"- Headline: {profile.headline or '-'}\n"
        f"- CTA Text: {profile.cta_text or '-'}\n"
        f"- Form Fields: {', '.join(profile.form_fields) or '-'}\n\n"
        f"YOUR TASK:\n"
        f"Create a Next.js component named \"{identifier}\" (section type: {plan.type}). {task}\n"
    )
    if plan.description:
        text += f"Purpose: {plan.description}\n"
    if plan.refinement:
        text += f"Refinement: {plan.refinement}\n"

    text += f"\nREQUIREMENTS:\n- Support {direction} layout (set dir=\"{profile.direction}\" on the root element)\n"
    if profile.language != "en":
        text += f"- All visible text must be in {profile.language_name}\n"

    style_prompt = build_style_prompt(profile.design_styles)
    if style_prompt:
        text += f"\nDESIGN STYLE REQUIREMENTS:\n{style_prompt}\n"

    text += (
        f"\nOutput ONLY the JSON object. The code must `export default function {identifier}()`."
    )
    return text


def parse_component_output(raw: str) -> tuple[str, list[Dependency]]:
    """
    Validate a model reply. Returns (code, dependencies).

    Raises ValueError when no usable code is present. Malformed dependency
    entries are dropped, not reported.
    """
    try:
        data = parse_json_object(raw)
    except ValueError:
        # Some replies are the bare file; accept them when they look like a module
        cleaned = strip_code_fences(raw)
        if re.search(r"export\s+default\s+", cleaned):
            return cleaned, []
        raise

    code = data.get("code")
    if not isinstance(code, str) or not code.strip():
        raise ValueError("Model response missing required 'code' field")

    dependencies = []
    raw_deps = data.get("dependencies") or []
    if isinstance(raw_deps, list):
        for dep in raw_deps:
            if not isinstance(dep, dict):
                continue
            name, version = dep.get("name"), dep.get("version")
            if isinstance(name, str) and isinstance(version, str) and name.strip() and version.strip():
                dependencies.append(Dependency(name=name.strip(), version=version.strip()))
    return strip_code_fences(code), dependencies


def backoff_delay(attempt: int, settings: Settings) -> float:
    """Delay after a failed attempt (1-based): base * 2**(attempt-1), capped."""
    return min(settings.retry_base_delay * (2 ** (attempt - 1)), settings.retry_max_delay)


def render_fallback_component(identifier: str, profile: BusinessProfile) -> str:
    """Generate a minimal deterministic component when generation fails."""
    heading = profile.headline or profile.business_name
    body = profile.description_text or profile.description
    cta = profile.cta_text or DEFAULT_CTA.get(profile.language, "Contact us")

    def js(value: str) -> str:
        return json.dumps(value, ensure_ascii=False)

    return f'''import React from 'react';

/**
 * {identifier} (fallback component)
 */
export default function {identifier}() {{
  return (
    <section className="w-full py-12 px-4 bg-white" dir="{profile.direction}">
      <div className="max-w-6xl mx-auto text-center">
        <p className="text-sm uppercase tracking-wide mb-2" style={{{{ color: '{profile.secondary_color}' }}}}>
          {{{js(profile.business_name)}}}
        </p>
        <h2 className="text-3xl font-bold mb-6" style={{{{ color: '{profile.primary_color}' }}}}>
          {{{js(heading)}}}
        </h2>
        <p className="text-lg mb-8">
          {{{js(body)}}}
        </p>
        <a
          href="#contact"
          className="inline-block px-6 py-3 rounded-md text-white font-medium"
          style={{{{ backgroundColor: '{profile.secondary_color}' }}}}
        >
          {{{js(cta)}}}
        </a>
      </div>
    </section>
  );
}}
'''


def merge_dependencies(project_path: str, dependencies: list[Dependency]) -> list[Dependency]:
    """
    Add dependencies to package.json. Names already present keep their version.

    Returns the dependencies that were actually added.
    """
    if not dependencies:
        return []

    manifest_path = os.path.join(project_path, "package.json")
    try:
        with open(manifest_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ProjectFileError("read manifest", manifest_path, e) from e
    try:
        manifest = json.loads(content)
    except json.JSONDecodeError as e:
        raise ProjectFileError("parse manifest", manifest_path, e) from e

    table = manifest.setdefault("dependencies", {})
    added = []
    for dep in dependencies:
        if dep.name in table:
            continue
        table[dep.name] = dep.version
        added.append(dep)
        logger.info(f"[section-gen] Added dependency: {dep.name}@{dep.version}")

    if added:
        try:
            with open(manifest_path, "w", encoding="utf-8") as f:
                f.write(json.dumps(manifest, indent=2) + "\n")
        except OSError as e:
            raise ProjectFileError("write manifest", manifest_path, e) from e
    return added


def write_component_file(target: ComponentPath, code: str) -> str:
    """Write code to the resolved path, or to index<ext> when the path is a directory."""
    file_path = target.file_path
    if os.path.isdir(file_path):
        file_path = os.path.join(file_path, f"index{target.extension or '.tsx'}")
        logger.warning(f"[section-gen] {target.file_path} is a directory, writing to {file_path} instead")

    try:
        os.makedirs(os.path.dirname(file_path), exist_ok=True)
    except OSError as e:
        raise ProjectFileError("create directory", os.path.dirname(file_path), e) from e
    try:
        with open(file_path, "w", encoding="utf-8") as f:
            f.write(code)
    except OSError as e:
        raise ProjectFileError("write file", file_path, e) from e
    return file_path


async def _request_component(
    plan: ComponentPlan,
    profile: BusinessProfile,
    identifier: str,
    client: ModelClient,
    settings: Settings,
    usage: TokenUsage | None,
    allow_fallback: bool = True,
) -> tuple[str, list[Dependency], int, bool]:
    """Returns (code, dependencies, attempts, fallback_used)."""
    prompt = build_component_prompt(plan, profile, identifier)

    for attempt in range(1, settings.max_attempts + 1):
        try:
            raw = await client.complete(
                prompt,
                system=SECTION_SYSTEM_PROMPT,
                max_tokens=settings.component_max_tokens,
                temperature=settings.component_temperature,
                usage=usage,
            )
            code, dependencies = parse_component_output(raw)
            return code, dependencies, attempt, False
        except Exception as e:
            logger.warning(f"[section-gen] Attempt {attempt}/{settings.max_attempts} failed for {identifier}: {e}")
            if attempt < settings.max_attempts:
                await asyncio.sleep(backoff_delay(attempt, settings))

    if not allow_fallback:
        raise ComponentGenerationError(
            f"All {settings.max_attempts} attempts failed for {identifier}; "
            f"no fallback template for non-component files"
        )
    logger.warning(f"[section-gen] All {settings.max_attempts} attempts failed for {identifier}, using fallback template")
    return render_fallback_component(identifier, profile), [], settings.max_attempts, True


async def generate_component(
    plan: ComponentPlan,
    profile: BusinessProfile,
    project_path: str,
    client: ModelClient,
    settings: Settings,
    usage: TokenUsage | None = None,
) -> GeneratedComponent:
    """
    Generate, persist and wire up one component.

    Model failures end in the fallback template for section components and
    raise ComponentGenerationError for any other file; filesystem failures
    raise ProjectFileError.
    """
    t0 = time.time()
    target = resolve_component_path(plan.name, project_path)
    logger.info(f"[section-gen] {plan.name} → {os.path.relpath(target.file_path, project_path)}")

    try:
        os.makedirs(target.target_dir, exist_ok=True)
    except OSError as e:
        raise ProjectFileError("create directory", target.target_dir, e) from e

    code, dependencies, attempts, fallback_used = await _request_component(
        plan, profile, target.identifier, client, settings, usage,
        allow_fallback=target.in_components,
    )
    code = ensure_client_directive(code)

    written_path = write_component_file(target, code)
    rel_path = os.path.relpath(written_path, project_path).replace(os.sep, "/")

    warnings = check_component(rel_path, code)
    if warnings:
        logger.warning(f"[section-gen] {format_warnings(warnings)}")

    merge_dependencies(project_path, dependencies)

    if target.in_components:
        page_path = os.path.join(project_path, "src", "app", "page.tsx")
        patch_page(page_path, target.identifier, target.import_path)
    else:
        logger.info(f"[section-gen] {rel_path} is not a section component, page left unchanged")

    elapsed = time.time() - t0
    logger.info(f"[section-gen] {target.identifier} ({plan.type}) — {elapsed:.1f}s, "
                f"{attempts} attempt(s), {len(code)} chars{' [fallback]' if fallback_used else ''}")

    return GeneratedComponent(
        name=target.identifier,
        code=code,
        dependencies=dependencies,
        path=rel_path,
        fallback_used=fallback_used,
        attempts=attempts,
    )
