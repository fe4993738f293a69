from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from .errors import ResponseFormatError
from .models.plan import PagePlan
from .models.section import Section, SectionCode
from .prompts import SECTION_EDIT_INSTRUCTION, build_section_edit_prompt
from .retry import Outcome, RetryPolicy, execute
from .vertex_ai_adapter import GenerationClient

logger = logging.getLogger(__name__)


class SectionEditor:
    """Rewrites one existing section according to an edit request."""

    def __init__(self, client: GenerationClient, *, policy: RetryPolicy | None = None) -> None:
        self._client = client
        self._policy = policy or RetryPolicy()

    async def edit_section(
        self,
        user_prompt: str,
        section: Section,
        page_plan: PagePlan,
    ) -> Outcome[SectionCode]:
        """A DEGRADED outcome carries the section's original, unedited code."""
        original = SectionCode.model_construct(
            html=section.html,
            css=section.css or "",
            js=section.js or "",
        )
        prompt = build_section_edit_prompt(user_prompt, section, page_plan)

        async def attempt() -> SectionCode:
            raw = await self._client.generate_json(SECTION_EDIT_INSTRUCTION, prompt)
            try:
                return SectionCode.model_validate(self._keep_unchanged_parts(raw, original))
            except ValidationError as exc:
                raise ResponseFormatError(f"Invalid edit response format: {exc}") from exc

        def on_retry(error: BaseException, attempt: int, max_attempts: int) -> None:
            logger.warning(
                "Error editing section %s (attempt %s/%s): %s",
                section.name,
                attempt,
                max_attempts,
                error,
                extra={"section_id": section.id},
            )

        def on_failure(error: BaseException, attempts: int) -> SectionCode:
            logger.error(
                "Failed to edit section %s after %s attempts, keeping original content",
                section.name,
                attempts,
                extra={"section_id": section.id, "error": str(error)},
            )
            return original

        return await execute(attempt, policy=self._policy, on_retry=on_retry, on_failure=on_failure)

    @staticmethod
    def _keep_unchanged_parts(raw: Any, original: SectionCode) -> Any:
        # Omitted or null css/js keeps the current code; an empty string clears it.
        if not isinstance(raw, dict):
            return raw
        merged = dict(raw)
        if merged.get("css") is None:
            merged["css"] = original.css
        if merged.get("js") is None:
            merged["js"] = original.js
        return merged


__all__ = ["SectionEditor"]
