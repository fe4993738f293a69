from __future__ import annotations

import html
import logging

from pydantic import ValidationError

from .errors import ResponseFormatError
from .models.plan import PagePlan, SectionPlan
from .models.section import SectionCode
from .prompts import SECTION_GENERATION_INSTRUCTION, build_section_prompt
from .retry import Outcome, RetryPolicy, execute
from .vertex_ai_adapter import GenerationClient

logger = logging.getLogger(__name__)

ERROR_SECTION_CLASS = "error-section"
ERROR_MARKER_ATTRIBUTE = "data-generation-error"


def error_section(section_plan: SectionPlan, error: BaseException) -> SectionCode:
    """Render a visible failure notice that still composes into a valid page."""
    prefix = f"error-{section_plan.id}"
    name = html.escape(section_plan.name)
    details = html.escape(str(error) or error.__class__.__name__)
    markup = (
        f'<section class="{ERROR_SECTION_CLASS} {prefix} {section_plan.type.value}-section" '
        f'{ERROR_MARKER_ATTRIBUTE}="true" data-section-id="{section_plan.id}">\n'
        f'  <div class="{prefix}-container">\n'
        f"    <h2>Failed to generate {name}</h2>\n"
        "    <p>This section could not be generated after multiple attempts.</p>\n"
        f'    <p class="{prefix}-details">Error: {details}</p>\n'
        "  </div>\n"
        "</section>"
    )
    styles = (
        f".{prefix} {{ padding: 2rem; margin: 1rem 0; text-align: center; "
        "background-color: #fff5f5; border: 1px solid #feb2b2; border-radius: 0.5rem; }\n"
        f".{prefix}-container {{ max-width: 800px; margin: 0 auto; }}\n"
        f".{prefix} h2 {{ color: #e53e3e; margin-bottom: 1rem; }}\n"
        f".{prefix}-details {{ font-family: monospace; font-size: 0.875rem; color: #718096; "
        "background-color: #f7fafc; padding: 0.5rem; border-radius: 0.25rem; margin-top: 1rem; }"
    )
    return SectionCode(html=markup, css=styles, js="")


def is_error_section(markup: str) -> bool:
    return ERROR_MARKER_ATTRIBUTE in markup


class SectionGenerator:
    """Generates the HTML/CSS/JS for one planned section."""

    def __init__(self, client: GenerationClient, *, policy: RetryPolicy | None = None) -> None:
        self._client = client
        self._policy = policy or RetryPolicy()

    async def generate_section(
        self,
        section_plan: SectionPlan,
        page_plan: PagePlan,
        original_prompt: str,
    ) -> Outcome[SectionCode]:
        """Never ends FATAL for transient errors: exhaustion yields an error section."""
        prompt = build_section_prompt(section_plan, page_plan, original_prompt)

        async def attempt() -> SectionCode:
            raw = await self._client.generate_json(SECTION_GENERATION_INSTRUCTION, prompt)
            try:
                return SectionCode.model_validate(raw)
            except ValidationError as exc:
                raise ResponseFormatError(f"Invalid section response format: {exc}") from exc

        def on_retry(error: BaseException, attempt: int, max_attempts: int) -> None:
            logger.warning(
                "Error generating section %s (attempt %s/%s): %s",
                section_plan.name,
                attempt,
                max_attempts,
                error,
                extra={"section_id": section_plan.id},
            )

        def on_failure(error: BaseException, attempts: int) -> SectionCode:
            logger.error(
                "Failed to generate section %s after %s attempts",
                section_plan.name,
                attempts,
                extra={"section_id": section_plan.id, "error": str(error)},
            )
            return error_section(section_plan, error)

        return await execute(attempt, policy=self._policy, on_retry=on_retry, on_failure=on_failure)


__all__ = ["SectionGenerator", "error_section", "is_error_section", "ERROR_SECTION_CLASS"]
