from __future__ import annotations

import logging

from pydantic import ValidationError

from .errors import ConfigurationError, IdentificationError, OperationFailedError, ResponseFormatError
from .models.edit import EditPlan, EditTarget
from .models.plan import PagePlan
from .prompts import EDIT_PLANNING_INSTRUCTION, build_edit_planning_prompt
from .retry import RetryPolicy, execute
from .vertex_ai_adapter import GenerationClient

logger = logging.getLogger(__name__)

NO_TARGET_MESSAGE = (
    "Could not identify which part of the page to change. "
    "Please be more specific, for example by naming the section (hero, pricing, contact...)."
)


class EditPlanner:
    """Selects every section an edit request touches."""

    def __init__(self, client: GenerationClient, *, policy: RetryPolicy | None = None) -> None:
        self._client = client
        self._policy = policy or RetryPolicy()

    async def plan_edits(self, user_prompt: str, page_plan: PagePlan) -> EditPlan:
        prompt = build_edit_planning_prompt(user_prompt, page_plan)

        async def attempt() -> EditPlan:
            raw = await self._client.generate_json(EDIT_PLANNING_INSTRUCTION, prompt)
            try:
                proposed = EditPlan.model_validate(raw)
            except ValidationError as exc:
                raise ResponseFormatError(f"Invalid edit planning response format: {exc}") from exc
            return self._resolve_targets(proposed, page_plan)

        def on_retry(error: BaseException, attempt: int, max_attempts: int) -> None:
            logger.warning(
                "Error planning edits (attempt %s/%s): %s",
                attempt,
                max_attempts,
                error,
            )

        outcome = await execute(attempt, policy=self._policy, on_retry=on_retry)
        if outcome.is_fatal:
            cause = outcome.cause
            if isinstance(cause, (ConfigurationError, OperationFailedError)):
                raise cause
            raise IdentificationError(
                f"Could not work out which sections to edit after {outcome.attempts} attempts. "
                "Please try rephrasing your request."
            ) from cause

        edit_plan = outcome.unwrap()
        logger.info(
            "Planned edits",
            extra={
                "section_ids": edit_plan.section_ids,
                "confidences": [target.confidence for target in edit_plan.sections],
                "summary": edit_plan.summary,
            },
        )
        return edit_plan

    def _resolve_targets(self, proposed: EditPlan, page_plan: PagePlan) -> EditPlan:
        known = {section.id for section in page_plan.sections}
        targets: list[EditTarget] = []
        seen: set[str] = set()
        for target in proposed.sections:
            if target.section_id not in known:
                logger.warning(
                    "Edit plan referenced an unknown section",
                    extra={"section_id": target.section_id},
                )
                continue
            if target.section_id in seen:
                continue
            seen.add(target.section_id)
            targets.append(target)

        if not targets:
            raise IdentificationError(NO_TARGET_MESSAGE)
        return EditPlan(sections=targets, summary=proposed.summary)


__all__ = ["EditPlanner", "NO_TARGET_MESSAGE"]
