"""Shared fixtures: settings pointed at tmp_path and a scripted model client."""
import json
import re

import pytest

from sitegen.config import Settings
from sitegen.models import BusinessProfile, TokenUsage
from sitegen.section_planner import PLAN_SYSTEM_PROMPT


_COMPONENT_NAME_RE = re.compile(r'component named "(\w+)"')


def component_reply(identifier: str, dependencies=None) -> str:
    code = (
        f"export default function {identifier}() {{\n"
        f"  return <section className=\"py-12\">{identifier}</section>;\n"
        f"}}\n"
    )
    return json.dumps({"code": code, "dependencies": dependencies or []})


def plan_reply(components) -> str:
    return json.dumps({"components": components})


class FakeModelClient:
    """
    Scripted stand-in for AnthropicModelClient.

    The planning call returns `plan`. Component calls pop from
    `scripts[identifier]` (strings are returned, exceptions raised) and
    otherwise return a valid component.
    """

    def __init__(self, plan: str | Exception = "", scripts: dict | None = None):
        self.plan = plan
        self.scripts = {k: list(v) for k, v in (scripts or {}).items()}
        self.calls = []

    async def complete(self, prompt, *, system=None, max_tokens=4000, temperature=None, usage: TokenUsage | None = None):
        if system == PLAN_SYSTEM_PROMPT:
            self.calls.append(("plan", None))
            reply = self.plan
        else:
            match = _COMPONENT_NAME_RE.search(prompt)
            identifier = match.group(1) if match else "Component"
            self.calls.append(("component", identifier))
            queue = self.scripts.get(identifier)
            reply = queue.pop(0) if queue else component_reply(identifier)

        if usage is not None:
            usage.record(100, 50)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def component_calls(self, identifier: str) -> int:
        return sum(1 for kind, name in self.calls if kind == "component" and name == identifier)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        anthropic_api_key="test-key",
        vercel_token="",
        projects_dir=str(tmp_path / "projects"),
        retry_base_delay=0,
        retry_max_delay=0,
        deploy_enabled=False,
    )


@pytest.fixture
def profile():
    return BusinessProfile(
        business_name="Acme Gym",
        business_type="fitness studio",
        industry="fitness",
        description="Neighborhood gym with group classes and personal training",
        primary_color="#112233",
        secondary_color="#445566",
        language="he",
        has_services=True,
        include_faq=False,
        cta_text="Join today",
    )


@pytest.fixture
def english_profile():
    return BusinessProfile(
        business_name="Blue Bakery",
        business_type="bakery",
        industry="food",
        description="Family bakery baking sourdough every morning",
        primary_color="#0044aa",
        secondary_color="#ffcc00",
        language="en",
    )
