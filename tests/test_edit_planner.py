import asyncio

import pytest
from conftest import EDIT_PLAN, FakeGenerationClient, bakery_plan, scripted

from landing_page_builder.edit_planner import NO_TARGET_MESSAGE, EditPlanner
from landing_page_builder.errors import IdentificationError, TransientGenerationError


def test_selects_every_targeted_section(fast_policy) -> None:
    plan = bakery_plan()
    hero, contact = plan.sections[1], plan.sections[3]
    client = FakeGenerationClient(
        {
            EDIT_PLAN: {
                "sections": [
                    {"sectionId": contact.id, "confidence": 0.9, "reasoning": "form lives here"},
                    {"sectionId": hero.id, "confidence": 1.7},
                ],
                "summary": "Add a phone field and mention it in the hero",
            }
        }
    )

    edit_plan = asyncio.run(EditPlanner(client, policy=fast_policy).plan_edits("add a phone field", plan))

    assert edit_plan.section_ids == [contact.id, hero.id]
    assert edit_plan.sections[1].confidence == 1.0
    assert edit_plan.sections[1].reasoning == ""
    prompt = client.calls_for(EDIT_PLAN)[0]
    assert f"- ID: {contact.id}, Name: Contact, Type: contact" in prompt


def test_unknown_and_duplicate_ids_are_dropped(fast_policy) -> None:
    plan = bakery_plan()
    footer = plan.sections[4]
    client = FakeGenerationClient(
        {
            EDIT_PLAN: {
                "sections": [
                    {"sectionId": "section-does-not-exist"},
                    {"sectionId": footer.id},
                    {"sectionId": footer.id},
                ],
                "summary": None,
            }
        }
    )

    edit_plan = asyncio.run(EditPlanner(client, policy=fast_policy).plan_edits("update copyright", plan))

    assert edit_plan.section_ids == [footer.id]
    assert edit_plan.summary == ""


def test_empty_target_list_is_an_identification_error(fast_policy) -> None:
    plan = bakery_plan()
    client = FakeGenerationClient({EDIT_PLAN: {"sections": [], "summary": "nothing matched"}})

    with pytest.raises(IdentificationError) as excinfo:
        asyncio.run(EditPlanner(client, policy=fast_policy).plan_edits("make it pop", plan))

    assert not isinstance(excinfo.value, TransientGenerationError)
    assert str(excinfo.value) == NO_TARGET_MESSAGE
    assert len(client.calls_for(EDIT_PLAN)) == 1


def test_malformed_response_is_retried(fast_policy) -> None:
    plan = bakery_plan()
    valid = {"sections": [{"sectionId": plan.sections[0].id}], "summary": "logo"}
    client = FakeGenerationClient({EDIT_PLAN: scripted({"sections": "header"}, valid)})

    edit_plan = asyncio.run(EditPlanner(client, policy=fast_policy).plan_edits("bigger logo", plan))

    assert edit_plan.section_ids == [plan.sections[0].id]
    assert len(client.calls_for(EDIT_PLAN)) == 2


def test_exhausted_transient_errors_become_identification_error(fast_policy) -> None:
    plan = bakery_plan()
    client = FakeGenerationClient({EDIT_PLAN: TransientGenerationError("503")})

    with pytest.raises(IdentificationError) as excinfo:
        asyncio.run(EditPlanner(client, policy=fast_policy).plan_edits("bigger logo", plan))

    assert excinfo.value.operation == "identification"
    assert isinstance(excinfo.value.__cause__, TransientGenerationError)
    assert len(client.calls_for(EDIT_PLAN)) == fast_policy.max_attempts
