from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Callable, Mapping, Sequence

from .composer import compose_page
from .config import Settings
from .edit_planner import EditPlanner
from .logging_config import set_trace_id
from .models.edit import EditedSection, EditResult, SectionEditStatus
from .models.plan import PagePlan, SectionPlan
from .models.section import GeneratedFiles, PageState, Section, SectionCode
from .planner import PagePlanner
from .retry import Outcome, RetryPolicy
from .scheduler import DEFAULT_MAX_PARALLEL, GenerationReport, run_batches
from .section_editor import SectionEditor
from .section_generator import SectionGenerator
from .state import PageStateMachine
from .vertex_ai_adapter import GenerationClient, VertexAIAdapter

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str, SectionEditStatus], None]


class PageOrchestrator:
    """Coordinates planning, parallel generation, edits and composition for one page."""

    def __init__(
        self,
        client: GenerationClient,
        *,
        max_parallel: int = DEFAULT_MAX_PARALLEL,
        policy: RetryPolicy | None = None,
        state_machine: PageStateMachine | None = None,
    ) -> None:
        if max_parallel < 1:
            raise ValueError("max_parallel must be at least 1")
        policy = policy or RetryPolicy()
        self._max_parallel = max_parallel
        self._machine = state_machine or PageStateMachine()
        self._planner = PagePlanner(client, policy=policy)
        self._generator = SectionGenerator(client, policy=policy)
        self._edit_planner = EditPlanner(client, policy=policy)
        self._editor = SectionEditor(client, policy=policy)
        self._restored_files: GeneratedFiles | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        client: GenerationClient | None = None,
    ) -> "PageOrchestrator":
        return cls(
            client or VertexAIAdapter.from_settings(settings),
            max_parallel=settings.max_parallel,
            policy=RetryPolicy.from_settings(settings),
        )

    @property
    def page_state(self) -> PageState:
        """Live state; read it, never mutate it."""
        return self._machine.state

    @property
    def max_parallel(self) -> int:
        return self._max_parallel

    def has_generated_page(self) -> bool:
        return any(section.is_generated for section in self.page_state.sections)

    def section_code(self) -> dict[str, SectionCode]:
        """Per-section code worth persisting next to the composed files."""
        code = {}
        for section in self.page_state.sections:
            section_code = section.code()
            if section_code is not None:
                code[section.id] = section_code
        return code

    async def generate_page(self, prompt: str) -> GenerationReport:
        set_trace_id(uuid.uuid4().hex)
        self._machine.begin_planning()
        self._restored_files = None
        try:
            plan = await self._planner.generate_page_plan(prompt)
        except Exception:
            logger.error("Page planning failed", exc_info=True)
            self._machine.abort()
            raise

        self._machine.adopt_plan(plan)
        try:
            report = await self._generate_sections(plan.sections, plan, prompt)
        except Exception:
            logger.error("Section generation aborted", exc_info=True, extra={"plan_id": plan.id})
            self._machine.abort()
            raise
        self._machine.finish_generation()

        logger.info(
            "Generated page",
            extra={
                "plan_id": plan.id,
                "sections_count": report.total,
                "failed_count": len(report.failed),
                "batches": report.batches,
            },
        )
        return report

    async def regenerate_section(self, section_id: str, original_prompt: str) -> GenerationReport:
        set_trace_id(uuid.uuid4().hex)
        plan, section_plan = self._machine.begin_regeneration(section_id)

        try:
            report = await self._generate_sections([section_plan], plan, original_prompt)
        except Exception:
            logger.error("Section regeneration aborted", exc_info=True, extra={"section_id": section_id})
            self._machine.abort()
            raise
        self._machine.finish_generation()
        return report

    async def edit_section_by_prompt(
        self,
        user_prompt: str,
        on_status: StatusCallback | None = None,
    ) -> EditResult:
        set_trace_id(uuid.uuid4().hex)
        plan = self._machine.begin_editing()
        try:
            edit_plan = await self._edit_planner.plan_edits(user_prompt, plan)
        except Exception:
            logger.error("Edit planning failed", exc_info=True)
            self._machine.abort()
            raise

        was_generated = {
            section_id: self._machine.section(section_id).is_generated
            for section_id in edit_plan.section_ids
        }
        targets = self._machine.flag_edit_targets(edit_plan.section_ids)
        statuses: dict[str, SectionEditStatus] = {}

        def report(section: Section, status: SectionEditStatus) -> None:
            statuses[section.id] = status
            logger.info(
                "Section %s: %s",
                section.name,
                status.value,
                extra={"section_id": section.id, "status": status.value},
            )
            if on_status is not None:
                on_status(section.id, status)

        async def edit_one(section: Section) -> Outcome[SectionCode]:
            report(section, SectionEditStatus.editing)
            self._machine.mark_section_generating(section.id)
            outcome = await self._editor.edit_section(user_prompt, section, plan)
            code = outcome.unwrap()
            if outcome.is_ok:
                self._machine.complete_section(section.id, code, generated=True)
                report(section, SectionEditStatus.updated)
            else:
                self._machine.restore_section(section.id, code, was_generated=was_generated[section.id])
                report(section, SectionEditStatus.failed)
            return outcome

        try:
            await run_batches(targets, edit_one, max_parallel=self._max_parallel)
        except Exception:
            logger.error("Section edits aborted", exc_info=True)
            self._machine.abort(restore_generated=was_generated)
            raise
        self._machine.finish_editing()

        first = targets[0]
        return EditResult(
            section_id=first.id,
            section_name=first.name,
            change_description=edit_plan.summary or user_prompt,
            sections=[
                EditedSection(section_id=section.id, section_name=section.name, status=statuses[section.id])
                for section in targets
            ],
        )

    async def get_composed_page(self) -> GeneratedFiles:
        state = self.page_state
        if self._restored_files is not None and not any(section.html for section in state.sections):
            return self._restored_files
        sections = [section.model_copy() for section in state.sections]
        return await asyncio.to_thread(compose_page, sections, state.plan)

    def restore_from_files(
        self,
        files: GeneratedFiles,
        plan: PagePlan,
        section_code: Mapping[str, SectionCode] | None = None,
    ) -> None:
        """Rebuild the state from a saved files + plan pair.

        The composed document is not split back into sections; pass
        ``section_code`` to seed per-section markup. Until any section has
        markup, ``get_composed_page`` returns ``files`` as saved.
        """
        self._machine.restore(plan, section_code)
        self._restored_files = files

    async def _generate_sections(
        self,
        section_plans: Sequence[SectionPlan],
        plan: PagePlan,
        prompt: str,
    ) -> GenerationReport:
        async def generate_one(section_plan: SectionPlan) -> Outcome[SectionCode]:
            self._machine.mark_section_generating(section_plan.id)
            outcome = await self._generator.generate_section(section_plan, plan, prompt)
            code = outcome.unwrap()
            self._machine.complete_section(section_plan.id, code, generated=outcome.is_ok)
            return outcome

        run = await run_batches(list(section_plans), generate_one, max_parallel=self._max_parallel)

        report = GenerationReport(plan_id=plan.id, batches=run.batches)
        for section_plan, outcome in zip(section_plans, run.results):
            if outcome.is_ok:
                report.generated.append(section_plan.id)
                report.generated_names.append(section_plan.name)
            else:
                report.failed.append(section_plan.id)
                report.failed_names.append(section_plan.name)
        return report


__all__ = ["PageOrchestrator", "StatusCallback"]
