from __future__ import annotations

import logging

from pydantic import ValidationError

from .errors import ConfigurationError, OperationFailedError, PlanningError, ResponseFormatError
from .models.plan import PagePlan, PlanDraft
from .prompts import PLANNING_INSTRUCTION, build_planning_prompt
from .retry import RetryPolicy, execute
from .vertex_ai_adapter import GenerationClient

logger = logging.getLogger(__name__)


class PagePlanner:
    """Turns a free-text request into an ordered, typed section plan."""

    def __init__(self, client: GenerationClient, *, policy: RetryPolicy | None = None) -> None:
        self._client = client
        self._policy = policy or RetryPolicy()

    async def generate_page_plan(self, prompt: str) -> PagePlan:
        async def attempt() -> PagePlan:
            raw = await self._client.generate_json(PLANNING_INSTRUCTION, build_planning_prompt(prompt))
            try:
                draft = PlanDraft.model_validate(raw)
            except ValidationError as exc:
                raise ResponseFormatError(f"Invalid planning response format: {exc}") from exc
            return draft.to_plan()

        def on_retry(error: BaseException, attempt: int, max_attempts: int) -> None:
            logger.warning(
                "Error generating page plan (attempt %s/%s): %s",
                attempt,
                max_attempts,
                error,
            )

        outcome = await execute(attempt, policy=self._policy, on_retry=on_retry)
        if outcome.is_fatal:
            cause = outcome.cause
            if isinstance(cause, (ConfigurationError, OperationFailedError)):
                raise cause
            raise PlanningError(
                f"Could not plan the page after {outcome.attempts} attempts. "
                "Please rephrase or add detail to your request."
            ) from cause

        plan = outcome.unwrap()
        logger.info(
            "Generated page plan",
            extra={
                "plan_id": plan.id,
                "title": plan.title,
                "sections_count": len(plan.sections),
                "attempts": outcome.attempts,
            },
        )
        return plan


__all__ = ["PagePlanner"]
