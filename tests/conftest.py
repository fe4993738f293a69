from __future__ import annotations

import asyncio
import copy
import re
from typing import Any, Callable

import pytest

from landing_page_builder.models.plan import PagePlan, PlanDraft
from landing_page_builder.orchestrator import PageOrchestrator
from landing_page_builder.prompts import (
    EDIT_PLANNING_INSTRUCTION,
    PLANNING_INSTRUCTION,
    SECTION_EDIT_INSTRUCTION,
    SECTION_GENERATION_INSTRUCTION,
)
from landing_page_builder.retry import RetryPolicy

PLAN = "plan"
SECTION = "section"
EDIT_PLAN = "edit_plan"
EDIT = "edit"

_KIND_BY_INSTRUCTION = {
    PLANNING_INSTRUCTION: PLAN,
    SECTION_GENERATION_INSTRUCTION: SECTION,
    EDIT_PLANNING_INSTRUCTION: EDIT_PLAN,
    SECTION_EDIT_INSTRUCTION: EDIT,
}

_NAME_LINE = re.compile(r"^- Name: (.+)$", re.MULTILINE)

BAKERY_PLAN = {
    "title": "Sunrise Bakery",
    "description": "Neighbourhood bakery with fresh bread every morning",
    "sections": [
        {"type": "header", "name": "Header", "description": "Logo and navigation", "requirements": ["sticky"]},
        {"type": "hero", "name": "Hero", "description": "Fresh bread banner", "requirements": ["CTA button"]},
        {"type": "about", "name": "About", "description": "Our story", "requirements": []},
        {"type": "contact", "name": "Contact", "description": "Contact form", "requirements": ["email field"]},
        {"type": "footer", "name": "Footer", "description": "Links and copyright", "requirements": []},
    ],
}


def bakery_plan() -> PagePlan:
    return PlanDraft.model_validate(BAKERY_PLAN).to_plan()


def section_name(prompt: str) -> str:
    match = _NAME_LINE.search(prompt)
    assert match, f"no section name in prompt: {prompt!r}"
    return match.group(1).strip()


def slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def section_response(prompt: str) -> dict:
    name = section_name(prompt)
    prefix = slug(name)
    return {
        "html": f'<section class="{prefix}-section"><h2>{name}</h2></section>',
        "css": f".{prefix}-section {{ padding: 1rem; }}",
        "js": "",
    }


def edited_response(prompt: str) -> dict:
    name = section_name(prompt)
    prefix = slug(name)
    return {
        "html": f'<section class="{prefix}-section"><h2>{name}</h2><p>edited</p></section>',
        "css": f".{prefix}-section {{ padding: 2rem; }}",
        "js": "",
    }


def scripted(*responses: Any) -> Callable[[str], Any]:
    """Return each response in turn; the last one repeats."""
    queue = list(responses)

    def respond(_prompt: str) -> Any:
        if len(queue) > 1:
            return queue.pop(0)
        return queue[0]

    return respond


class FakeGenerationClient:
    """Answers by system instruction, the way the Vertex AI adapter is called.

    A response may be a JSON-like value, an exception instance to raise, or a
    callable taking the prompt and returning either of those.
    """

    def __init__(self, responses: dict[str, Any] | None = None, *, delay: float = 0.0) -> None:
        self.responses: dict[str, Any] = {
            PLAN: BAKERY_PLAN,
            SECTION: section_response,
            EDIT: edited_response,
        }
        self.responses.update(responses or {})
        self.delay = delay
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def calls_for(self, kind: str) -> list[str]:
        return [prompt for call_kind, prompt in self.calls if call_kind == kind]

    async def generate_json(self, system_instruction: str, prompt: str) -> Any:
        kind = _KIND_BY_INSTRUCTION[system_instruction]
        self.calls.append((kind, prompt))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            response = self.responses[kind]
            if callable(response):
                response = response(prompt)
            if isinstance(response, BaseException):
                raise response
            return copy.deepcopy(response)
        finally:
            self.in_flight -= 1


@pytest.fixture()
def fast_policy() -> RetryPolicy:
    return RetryPolicy(max_retries=3, base_delay=0.0)


@pytest.fixture()
def fake_client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture()
def make_orchestrator(fast_policy):
    def factory(client: FakeGenerationClient, **kwargs: Any) -> PageOrchestrator:
        kwargs.setdefault("policy", fast_policy)
        return PageOrchestrator(client, **kwargs)

    return factory
