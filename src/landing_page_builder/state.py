from __future__ import annotations

import logging
from typing import Iterable, Mapping

from .errors import (
    InvalidTransitionError,
    NoPagePlanError,
    OperationInProgressError,
    SectionNotFoundError,
)
from .models.plan import PagePlan, SectionPlan
from .models.section import GenerationProgress, PageState, Section, SectionCode

logger = logging.getLogger(__name__)

IDLE = "idle"
PLANNING = "planning"
GENERATING = "generating"
EDITING = "editing"


class PageStateMachine:
    """Sole writer of a ``PageState``.

    At most one of planning, generating and editing is active. Every
    ``begin_*`` action checks that synchronously, so two coroutines sharing
    an event loop cannot both start an operation. Sections are updated in
    place by id; a section that is not part of the running operation is
    never touched.
    """

    def __init__(self, state: PageState | None = None) -> None:
        self._state = state or PageState()
        self._completed: set[str] = set()

    @property
    def state(self) -> PageState:
        return self._state

    @property
    def mode(self) -> str:
        return self._state.mode

    def section(self, section_id: str) -> Section:
        section = self._state.section(section_id)
        if section is None:
            raise SectionNotFoundError(section_id)
        return section

    def begin_planning(self) -> None:
        self._require_idle(PLANNING)
        self._state.plan = None
        self._state.sections = []
        self._state.is_planning = True
        self._reset_progress(total=0)
        logger.debug("State: idle -> planning")

    def adopt_plan(self, plan: PagePlan) -> None:
        self._require_mode(PLANNING, action="adopt_plan")
        self._state.plan = plan
        self._state.sections = [
            Section(
                id=section_plan.id,
                type=section_plan.type,
                name=section_plan.name,
                html="",
                css="",
                js="",
            )
            for section_plan in plan.sections
        ]
        self._state.is_planning = False
        self._state.is_generating = True
        self._reset_progress(total=len(plan.sections))
        logger.debug("State: planning -> generating", extra={"plan_id": plan.id})

    def begin_regeneration(self, section_id: str) -> tuple[PagePlan, SectionPlan]:
        self._require_idle(GENERATING)
        plan = self._require_plan()
        section_plan = plan.section(section_id)
        if section_plan is None:
            raise SectionNotFoundError(section_id)
        self.section(section_id)  # raises when the plan and sections disagree
        self._state.is_generating = True
        self._reset_progress(total=1)
        return plan, section_plan

    def begin_editing(self) -> PagePlan:
        self._require_idle(EDITING)
        plan = self._require_plan()
        if not self._state.sections:
            raise NoPagePlanError("There is no generated page to edit yet")
        self._state.is_editing = True
        self._reset_progress(total=0)
        logger.debug("State: idle -> editing")
        return plan

    def flag_edit_targets(self, section_ids: Iterable[str]) -> list[Section]:
        self._require_mode(EDITING, action="flag_edit_targets")
        targets = [self.section(section_id) for section_id in section_ids]
        for section in targets:
            section.is_in_edit_plan = True
            section.is_generated = False
        self._reset_progress(total=len(targets))
        return targets

    def mark_section_generating(self, section_id: str) -> Section:
        self._require_mode(GENERATING, EDITING, action="mark_section_generating")
        section = self.section(section_id)
        section.is_generating = True
        self._state.generation_progress.current_section = section.name
        return section

    def complete_section(self, section_id: str, code: SectionCode, *, generated: bool) -> Section:
        self._require_mode(GENERATING, EDITING, action="complete_section")
        section = self.section(section_id)
        section.html = code.html
        section.css = code.css
        section.js = code.js
        section.is_generated = generated
        section.is_generating = False
        self._advance(section_id)
        return section

    def restore_section(self, section_id: str, code: SectionCode, *, was_generated: bool) -> Section:
        """Put back a section's prior content after a failed edit."""
        return self.complete_section(section_id, code, generated=was_generated)

    def finish_generation(self) -> None:
        self._require_mode(GENERATING, action="finish_generation")
        self._state.is_generating = False
        progress = self._state.generation_progress
        self._state.generation_progress = GenerationProgress(current=progress.total, total=progress.total)
        logger.debug("State: generating -> idle")

    def finish_editing(self) -> None:
        self._require_mode(EDITING, action="finish_editing")
        for section in self._state.sections:
            if section.is_in_edit_plan:
                section.is_in_edit_plan = False
        self._state.is_editing = False
        progress = self._state.generation_progress
        self._state.generation_progress = GenerationProgress(current=progress.current, total=progress.total)
        logger.debug("State: editing -> idle")

    def abort(self, restore_generated: Mapping[str, bool] | None = None) -> None:
        """Return to idle after a fatal failure of the running operation.

        ``restore_generated`` resets ``is_generated`` on sections that were
        flagged for editing but never completed.
        """
        previous = self.mode
        for section_id, flag in (restore_generated or {}).items():
            section = self._state.section(section_id)
            if section is not None and section_id not in self._completed:
                section.is_generated = flag
        for section in self._state.sections:
            if section.is_generating:
                section.is_generating = False
            if section.is_in_edit_plan:
                section.is_in_edit_plan = False
        self._state.is_planning = False
        self._state.is_generating = False
        self._state.is_editing = False
        self._reset_progress(total=0)
        logger.debug("State: %s -> idle (aborted)", previous)

    def restore(
        self,
        plan: PagePlan,
        section_code: Mapping[str, SectionCode] | None = None,
    ) -> None:
        self._require_idle("restore")
        section_code = section_code or {}
        sections: list[Section] = []
        for section_plan in plan.sections:
            code = section_code.get(section_plan.id)
            sections.append(
                Section(
                    id=section_plan.id,
                    type=section_plan.type,
                    name=section_plan.name,
                    html=code.html if code else "",
                    css=code.css if code else "",
                    js=code.js if code else "",
                    is_generated=True,
                )
            )
        self._state.plan = plan
        self._state.sections = sections
        self._reset_progress(total=0)

    def _advance(self, section_id: str) -> None:
        if section_id in self._completed:
            logger.warning("Section completed twice in one operation", extra={"section_id": section_id})
            return
        self._completed.add(section_id)
        self._state.generation_progress.current += 1

    def _reset_progress(self, *, total: int) -> None:
        self._completed = set()
        self._state.generation_progress = GenerationProgress(current=0, total=total)

    def _require_idle(self, requested: str) -> None:
        if self.mode != IDLE:
            raise OperationInProgressError(requested, self.mode)

    def _require_mode(self, *modes: str, action: str) -> None:
        if self.mode not in modes:
            raise InvalidTransitionError(f"{action} is not allowed while {self.mode}")

    def _require_plan(self) -> PagePlan:
        if self._state.plan is None:
            raise NoPagePlanError("No page has been planned yet")
        return self._state.plan


__all__ = ["PageStateMachine", "IDLE", "PLANNING", "GENERATING", "EDITING"]
