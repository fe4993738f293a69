import asyncio
import re

import pytest
from conftest import EDIT, EDIT_PLAN, PLAN, SECTION, FakeGenerationClient, section_name, section_response

from landing_page_builder.errors import (
    ConfigurationError,
    IdentificationError,
    NoPagePlanError,
    OperationInProgressError,
    PlanningError,
    TransientGenerationError,
)
from landing_page_builder.models.edit import SectionEditStatus
from landing_page_builder.models.section import GeneratedFiles
from landing_page_builder.section_generator import is_error_section
from landing_page_builder.state import PageStateMachine


class RecordingStateMachine(PageStateMachine):
    def __init__(self) -> None:
        super().__init__()
        self.progress: list[int] = []
        self.generating: list[str] = []

    def mark_section_generating(self, section_id):
        self.generating.append(section_id)
        return super().mark_section_generating(section_id)

    def complete_section(self, section_id, code, *, generated):
        section = super().complete_section(section_id, code, generated=generated)
        self.progress.append(self.state.generation_progress.current)
        return section


def failing_for(name: str):
    def respond(prompt: str):
        if section_name(prompt) == name:
            return TransientGenerationError(f"{name} keeps failing")
        return section_response(prompt)

    return respond


def targeting(*names: str, summary: str = "Add a phone field to the contact form"):
    def respond(prompt: str):
        ids = []
        for name in names:
            match = re.search(rf"- ID: (\S+), Name: {name},", prompt)
            assert match, f"{name} not offered to the edit planner"
            ids.append({"sectionId": match.group(1), "confidence": 0.9, "reasoning": "matches request"})
        return {"sections": ids, "summary": summary}

    return respond


def generated_page(make_orchestrator, client=None, **kwargs):
    client = client or FakeGenerationClient()
    orchestrator = make_orchestrator(client, **kwargs)
    asyncio.run(orchestrator.generate_page("a bakery landing page"))
    return orchestrator, client


def test_bakery_page_is_generated_and_composed_in_plan_order(make_orchestrator) -> None:
    machine = RecordingStateMachine()
    client = FakeGenerationClient()
    orchestrator = make_orchestrator(client, state_machine=machine)

    report = asyncio.run(orchestrator.generate_page("a bakery landing page"))
    files = asyncio.run(orchestrator.get_composed_page())

    assert report.total == 5
    assert not report.has_failures
    assert report.batches == 2
    assert orchestrator.has_generated_page()
    names = ("header", "hero", "about", "contact", "footer")
    positions = [files.html.index(f'class="{name}-section"') for name in names]
    assert positions == sorted(positions)
    rule_blocks = set(re.findall(r"\.([a-z]+)-section\s*\{", files.css))
    assert rule_blocks == set(names)
    assert sorted(machine.progress) == machine.progress
    assert machine.progress == [1, 2, 3, 4, 5]


def test_generation_leaves_no_section_in_flight(make_orchestrator) -> None:
    orchestrator, _ = generated_page(make_orchestrator)
    state = orchestrator.page_state

    assert state.mode == "idle"
    assert state.generation_progress.current == state.generation_progress.total == 5
    assert all(not section.is_generating and section.is_generated for section in state.sections)


def test_failed_section_gets_error_placeholder(make_orchestrator) -> None:
    client = FakeGenerationClient({SECTION: failing_for("About")})
    orchestrator = make_orchestrator(client)

    report = asyncio.run(orchestrator.generate_page("a bakery landing page"))

    state = orchestrator.page_state
    about = next(section for section in state.sections if section.name == "About")
    assert about.is_generated is False
    assert is_error_section(about.html)
    assert "About" in about.html
    others = [section for section in state.sections if section.name != "About"]
    assert len(others) == 4
    assert all(section.is_generated for section in others)
    assert not state.is_generating
    assert report.failed_names == ["About"]
    assert "About" in report.summary()


def test_concurrency_never_exceeds_max_parallel(make_orchestrator) -> None:
    client = FakeGenerationClient(delay=0.005)
    orchestrator = make_orchestrator(client, max_parallel=2)

    report = asyncio.run(orchestrator.generate_page("a bakery landing page"))

    assert report.batches == 3
    assert client.max_in_flight == 2


def test_planning_failure_returns_to_idle(make_orchestrator) -> None:
    client = FakeGenerationClient({PLAN: {"title": "", "sections": []}})
    orchestrator = make_orchestrator(client)

    with pytest.raises(PlanningError):
        asyncio.run(orchestrator.generate_page("???"))

    assert orchestrator.page_state.mode == "idle"
    assert orchestrator.page_state.plan is None
    assert client.calls_for(SECTION) == []


def test_second_operation_is_rejected_while_one_runs(make_orchestrator) -> None:
    client = FakeGenerationClient(delay=0.01)
    orchestrator = make_orchestrator(client)

    async def scenario():
        running = asyncio.create_task(orchestrator.generate_page("a bakery landing page"))
        await asyncio.sleep(0)
        with pytest.raises(OperationInProgressError):
            await orchestrator.generate_page("another page")
        with pytest.raises(OperationInProgressError):
            await orchestrator.edit_section_by_prompt("change the hero")
        return await running

    report = asyncio.run(scenario())

    assert report.total == 5
    assert len(client.calls_for(PLAN)) == 1


def test_edit_touches_only_the_targeted_section(make_orchestrator) -> None:
    machine = RecordingStateMachine()
    client = FakeGenerationClient({EDIT_PLAN: targeting("Contact")})
    orchestrator, _ = generated_page(make_orchestrator, client, state_machine=machine)
    contact = next(section for section in orchestrator.page_state.sections if section.name == "Contact")
    untouched = {
        section.id: (section, section.model_dump())
        for section in orchestrator.page_state.sections
        if section.id != contact.id
    }
    machine.generating.clear()
    statuses = []

    result = asyncio.run(
        orchestrator.edit_section_by_prompt(
            "add a phone field to contact",
            on_status=lambda section_id, status: statuses.append((section_id, status)),
        )
    )

    assert machine.generating == [contact.id]
    assert not contact.is_generating
    assert contact.is_generated
    assert not contact.is_in_edit_plan
    assert "<p>edited</p>" in contact.html
    for section in orchestrator.page_state.sections:
        if section.id in untouched:
            original, snapshot = untouched[section.id]
            assert section is original
            assert section.model_dump() == snapshot
    assert statuses == [(contact.id, SectionEditStatus.editing), (contact.id, SectionEditStatus.updated)]
    assert result.section_id == contact.id
    assert result.section_name == "Contact"
    assert result.change_description == "Add a phone field to the contact form"
    assert orchestrator.page_state.mode == "idle"


def test_multi_section_edit_reports_every_section(make_orchestrator) -> None:
    client = FakeGenerationClient({EDIT_PLAN: targeting("Hero", "Footer", summary="Holiday hours")})
    orchestrator, _ = generated_page(make_orchestrator, client)

    result = asyncio.run(orchestrator.edit_section_by_prompt("announce holiday hours"))

    assert [item.section_name for item in result.sections] == ["Hero", "Footer"]
    assert all(item.status == SectionEditStatus.updated for item in result.sections)
    assert len(client.calls_for(EDIT)) == 2


def test_failed_edit_keeps_previous_content(make_orchestrator) -> None:
    client = FakeGenerationClient(
        {EDIT_PLAN: targeting("Contact"), EDIT: TransientGenerationError("model overloaded")}
    )
    orchestrator, _ = generated_page(make_orchestrator, client)
    contact = next(section for section in orchestrator.page_state.sections if section.name == "Contact")
    before = contact.model_dump(exclude={"is_in_edit_plan"})

    result = asyncio.run(orchestrator.edit_section_by_prompt("add a phone field to contact"))

    assert [item.status for item in result.sections] == [SectionEditStatus.failed]
    assert result.failed_sections[0].section_id == contact.id
    assert contact.model_dump(exclude={"is_in_edit_plan"}) == before
    assert contact.is_generated


def test_edit_without_targets_is_rejected(make_orchestrator) -> None:
    client = FakeGenerationClient({EDIT_PLAN: {"sections": [], "summary": "unclear"}})
    orchestrator, _ = generated_page(make_orchestrator, client)
    before = [section.model_dump() for section in orchestrator.page_state.sections]

    with pytest.raises(IdentificationError) as excinfo:
        asyncio.run(orchestrator.edit_section_by_prompt("make it nicer"))

    assert not isinstance(excinfo.value, TransientGenerationError)
    assert orchestrator.page_state.mode == "idle"
    assert [section.model_dump() for section in orchestrator.page_state.sections] == before
    assert client.calls_for(EDIT) == []


def test_edit_before_generation_is_rejected(make_orchestrator) -> None:
    orchestrator = make_orchestrator(FakeGenerationClient())

    with pytest.raises(NoPagePlanError):
        asyncio.run(orchestrator.edit_section_by_prompt("change the hero"))


def test_regenerate_repairs_a_failed_section(make_orchestrator) -> None:
    client = FakeGenerationClient({SECTION: failing_for("About")})
    orchestrator, _ = generated_page(make_orchestrator, client)
    about = next(section for section in orchestrator.page_state.sections if section.name == "About")
    client.responses[SECTION] = section_response

    report = asyncio.run(orchestrator.regenerate_section(about.id, "a bakery landing page"))

    assert report.generated == [about.id]
    assert about.is_generated
    assert not is_error_section(about.html)
    assert orchestrator.page_state.generation_progress.current == 1


def test_restored_page_is_served_until_sections_change(make_orchestrator) -> None:
    source, _ = generated_page(make_orchestrator)
    files = asyncio.run(source.get_composed_page())
    plan = source.page_state.plan

    orchestrator = make_orchestrator(FakeGenerationClient())
    orchestrator.restore_from_files(files, plan)

    assert orchestrator.has_generated_page()
    assert asyncio.run(orchestrator.get_composed_page()) == files
    assert orchestrator.page_state.plan is plan


def test_empty_page_composes_to_a_shell(make_orchestrator) -> None:
    orchestrator = make_orchestrator(FakeGenerationClient())

    files = asyncio.run(orchestrator.get_composed_page())

    assert isinstance(files, GeneratedFiles)
    assert not orchestrator.has_generated_page()
    assert "Generated Landing Page" in files.html


def test_configuration_error_aborts_generation(make_orchestrator) -> None:
    client = FakeGenerationClient({SECTION: ConfigurationError("PROJECT_ID is not set")})
    orchestrator = make_orchestrator(client)

    with pytest.raises(ConfigurationError):
        asyncio.run(orchestrator.generate_page("a bakery landing page"))

    state = orchestrator.page_state
    assert state.mode == "idle"
    assert not any(section.is_generating for section in state.sections)
    assert len(client.calls_for(SECTION)) == 4
