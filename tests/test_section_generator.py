"""Unit tests for single-component generation."""
import json
import os

import pytest

from sitegen.errors import ComponentGenerationError, ErrorCategory, ModelError, ProjectFileError
from sitegen.models import ComponentPlan, Dependency, TokenUsage
from sitegen.project_assembler import scaffold_project
from sitegen.section_generator import (
    backoff_delay,
    generate_component,
    get_file_extension,
    merge_dependencies,
    parse_component_output,
    render_fallback_component,
    resolve_component_path,
)

from conftest import FakeModelClient, component_reply


@pytest.fixture
def project_path(tmp_path, profile):
    return scaffold_project(profile, str(tmp_path), "acme").project_path


def _read(path):
    with open(path, encoding="utf-8") as f:
        return f.read()


class TestPathResolution:

    @pytest.mark.parametrize("name, expected", [
        ("HeroSection", ".tsx"),
        ("Highlights", ".tsx"),
        ("utils", ".ts"),
        ("globalStyles.css", ""),
        ("customCss", ".css"),
    ])
    def test_extension(self, name, expected):
        assert get_file_extension(name) == expected

    def test_section_goes_to_components(self, tmp_path):
        target = resolve_component_path("HeroSection", str(tmp_path))
        assert target.file_path == os.path.join(str(tmp_path), "src", "components", "HeroSection.tsx")
        assert target.identifier == "HeroSection"
        assert target.in_components
        assert target.import_path == "../components/HeroSection"

    def test_prefixes_are_stripped(self, tmp_path):
        target = resolve_component_path("src/components/Footer", str(tmp_path))
        assert target.file_path == os.path.join(str(tmp_path), "src", "components", "Footer.tsx")

    def test_nested_ui_component(self, tmp_path):
        target = resolve_component_path("ui/Button", str(tmp_path))
        assert target.file_path == os.path.join(str(tmp_path), "src", "components", "ui", "Button.tsx")
        assert target.identifier == "Button"
        assert target.import_path == "../components/ui/Button"

    def test_app_special_file(self, tmp_path):
        target = resolve_component_path("loading", str(tmp_path))
        assert target.file_path == os.path.join(str(tmp_path), "src", "app", "loading.tsx")
        assert not target.in_components

    def test_lib_file_is_not_a_section(self, tmp_path):
        target = resolve_component_path("lib/formatters", str(tmp_path))
        assert target.target_dir == os.path.join(str(tmp_path), "src", "lib")
        assert not target.in_components

    def test_path_traversal_is_dropped(self, tmp_path):
        target = resolve_component_path("../../etc/Passwd", str(tmp_path))
        assert target.file_path.startswith(os.path.join(str(tmp_path), "src"))


class TestParseOutput:

    def test_json_reply(self):
        code, deps = parse_component_output(component_reply("Hero", [
            {"name": "lucide-react", "version": "^0.300.0"},
            {"name": "", "version": "1"},
            "bogus",
        ]))
        assert "export default function Hero" in code
        assert deps == [Dependency(name="lucide-react", version="^0.300.0")]

    def test_bare_module_reply(self):
        code, deps = parse_component_output("```tsx\nexport default function Hero() { return null; }\n```")
        assert code.startswith("export default function Hero")
        assert deps == []

    @pytest.mark.parametrize("raw", ["I cannot help with that", json.dumps({"code": ""}), json.dumps({"deps": []})])
    def test_unusable_reply(self, raw):
        with pytest.raises(ValueError):
            parse_component_output(raw)


class TestBackoff:

    def test_exponential_and_capped(self, settings):
        settings = settings.model_copy(update={"retry_base_delay": 2.0, "retry_max_delay": 10.0})
        assert [backoff_delay(a, settings) for a in (1, 2, 3, 4)] == [2.0, 4.0, 8.0, 10.0]


class TestDependencyMerge:

    def test_merge_is_idempotent_and_keeps_pins(self, project_path):
        first = merge_dependencies(project_path, [Dependency(name="lucide-react", version="^0.300.0")])
        second = merge_dependencies(project_path, [
            Dependency(name="lucide-react", version="^9.9.9"),
            Dependency(name="next", version="15.0.0"),
        ])
        manifest = json.loads(_read(os.path.join(project_path, "package.json")))

        assert [d.name for d in first] == ["lucide-react"]
        assert second == []
        assert manifest["dependencies"]["lucide-react"] == "^0.300.0"
        assert manifest["dependencies"]["next"] == "14.0.4"
        assert list(manifest["dependencies"]).count("lucide-react") == 1

    def test_corrupt_manifest_raises(self, project_path):
        with open(os.path.join(project_path, "package.json"), "w", encoding="utf-8") as f:
            f.write("{not json")
        with pytest.raises(ProjectFileError) as exc_info:
            merge_dependencies(project_path, [Dependency(name="x", version="1")])
        assert exc_info.value.operation == "parse manifest"


class TestFallback:

    def test_template_is_deterministic(self, profile):
        first = render_fallback_component("Hero", profile)
        assert first == render_fallback_component("Hero", profile)
        assert "export default function Hero()" in first
        assert "Acme Gym" in first
        assert "Join today" in first
        assert 'dir="rtl"' in first
        assert "useState" not in first

    def test_default_cta_follows_language(self, english_profile):
        assert "Contact us" in render_fallback_component("Hero", english_profile)


class TestGenerateComponent:

    async def test_writes_file_and_patches_page(self, project_path, profile, settings):
        client = FakeModelClient(scripts={"HeroSection": [component_reply("HeroSection", [
            {"name": "lucide-react", "version": "^0.300.0"},
        ])]})
        plan = ComponentPlan(name="HeroSection", type="hero", priority=1, prompt="Hero with CTA")
        usage = TokenUsage()

        result = await generate_component(plan, profile, project_path, client, settings, usage)

        assert result.path == "src/components/HeroSection.tsx"
        assert not result.fallback_used
        assert result.attempts == 1
        assert usage.requests == 1
        assert "export default function HeroSection" in _read(os.path.join(project_path, result.path))

        page = _read(os.path.join(project_path, "src/app/page.tsx"))
        assert "import HeroSection from '../components/HeroSection';" in page
        assert page.index("<HeroSection />") < page.index("</main>")

        manifest = json.loads(_read(os.path.join(project_path, "package.json")))
        assert manifest["dependencies"]["lucide-react"] == "^0.300.0"

    async def test_rerun_overwrites(self, project_path, profile, settings):
        plan = ComponentPlan(name="Footer", type="footer", prompt="Footer")
        await generate_component(plan, profile, project_path, FakeModelClient(), settings)
        first = _read(os.path.join(project_path, "src/components/Footer.tsx"))
        await generate_component(plan, profile, project_path, FakeModelClient(), settings)
        second = _read(os.path.join(project_path, "src/components/Footer.tsx"))

        assert second == first
        page = _read(os.path.join(project_path, "src/app/page.tsx"))
        assert page.count("<Footer />") == 1
        assert page.count("import Footer from") == 1

    async def test_existing_directory_gets_index_file(self, project_path, profile, settings):
        os.makedirs(os.path.join(project_path, "src", "components", "Gallery.tsx"))
        plan = ComponentPlan(name="Gallery", prompt="Gallery")
        result = await generate_component(plan, profile, project_path, FakeModelClient(), settings)
        assert result.path == "src/components/Gallery.tsx/index.tsx"

    async def test_client_directive_added_for_hooks(self, project_path, profile, settings):
        code = "import { useState } from 'react';\nexport default function Faq() { const [o] = useState(false); return null; }\n"
        client = FakeModelClient(scripts={"Faq": [json.dumps({"code": code, "dependencies": []})]})
        result = await generate_component(ComponentPlan(name="Faq", prompt="FAQ"), profile, project_path, client, settings)
        assert result.code.startswith("'use client';")

    async def test_hero_falls_back_after_three_failures(self, project_path, profile, settings):
        client = FakeModelClient(scripts={"Hero": [
            ModelError(ErrorCategory.service, "503 overloaded"),
            "garbage",
            ModelError(ErrorCategory.service, "503 overloaded"),
        ]})
        plan = ComponentPlan(name="Hero", type="hero", priority=1, prompt="Hero")

        result = await generate_component(plan, profile, project_path, client, settings)

        assert client.component_calls("Hero") == 3
        assert result.fallback_used
        assert result.attempts == 3
        assert result.code == render_fallback_component("Hero", profile)
        assert "Acme Gym" in result.code
        assert "Join today" in result.code
        assert "<Hero />" in _read(os.path.join(project_path, "src/app/page.tsx"))

    async def test_recovers_on_second_attempt(self, project_path, profile, settings):
        client = FakeModelClient(scripts={"Pricing": ["oops", component_reply("Pricing")]})
        result = await generate_component(ComponentPlan(name="Pricing", prompt="Pricing"), profile, project_path, client, settings)
        assert result.attempts == 2
        assert not result.fallback_used

    async def test_non_component_file_fails_instead_of_fallback(self, project_path, profile, settings):
        client = FakeModelClient(scripts={"Formatters": ["bad", "bad", "bad"]})
        plan = ComponentPlan(name="lib/formatters", prompt="Date helpers")

        with pytest.raises(ComponentGenerationError):
            await generate_component(plan, profile, project_path, client, settings)

        assert client.component_calls("Formatters") == 3
        assert not os.path.exists(os.path.join(project_path, "src/lib/formatters.tsx"))
        assert "Formatters" not in _read(os.path.join(project_path, "src/app/page.tsx"))

    @pytest.mark.parametrize("name, identifier", [("customCss", "CustomCss"), ("styles/theme.css", "Theme")])
    async def test_stylesheet_fails_instead_of_fallback(self, project_path, profile, settings, name, identifier):
        client = FakeModelClient(scripts={identifier: ["bad", "bad", "bad"]})
        with pytest.raises(ComponentGenerationError):
            await generate_component(ComponentPlan(name=name, prompt="Styles"), profile, project_path, client, settings)
