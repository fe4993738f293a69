from __future__ import annotations

from .models.plan import PagePlan, SectionPlan, SectionType
from .models.section import Section

_SECTION_TYPES = "|".join(section_type.value for section_type in SectionType)

PLANNING_INSTRUCTION = f"""You are an expert UX/UI designer and web architect. Analyze a user's request for a landing page and create a structural plan for it.

Respond strictly with a JSON object in the following format:
{{
  "title": "Landing page title",
  "description": "Brief description of the landing page purpose",
  "sections": [
    {{
      "type": "{_SECTION_TYPES}",
      "name": "Human-readable section name",
      "description": "What this section should accomplish",
      "requirements": ["Specific requirement 1", "Specific requirement 2"]
    }}
  ]
}}

Available section types:
- header: Navigation, logo, menu
- hero: Main banner with headline and CTA
- features: Product/service features showcase
- about: About us/company information
- services: Services or products offered
- pricing: Pricing plans and packages
- testimonials: Customer reviews and social proof
- cta: Call-to-action section
- contact: Contact information and forms
- footer: Footer links and information

Guidelines:
- Work out what kind of business or product the request is for
- Choose 4-8 sections that make sense for that use case
- Order sections logically (header first, footer last)
- Make requirements specific: colors, content types, functionality
- Leave out sections that are not relevant to the request

Return ONLY the JSON object. Every section type must come from the list above."""

SECTION_GENERATION_INSTRUCTION = """You are an expert front-end developer building one section of a landing page. Generate clean, production-ready HTML, CSS and JavaScript for that section only.

Respond strictly with a JSON object in the following format:
{
  "html": "Complete HTML for this section only",
  "css": "CSS for this section, every selector using the section's class prefix",
  "js": "JavaScript for this section's interactivity, or an empty string"
}

HTML:
- One semantic section element; no DOCTYPE, html, head or body tags
- Use a unique class prefix for this section (e.g. "hero-", "pricing-")
- Add ARIA attributes where they help accessibility

CSS:
- Responsive, mobile-first, Flexbox/Grid
- Scope every selector with the section's class prefix so sections never collide

JavaScript:
- Modern ES syntax, scoped to this section's elements only
- Return an empty string when the section needs no script

Use realistic content (no Lorem ipsum). Return ONLY the JSON object."""

EDIT_PLANNING_INSTRUCTION = """You analyze edit requests for an existing landing page and decide which of its sections must change.

Respond strictly with a JSON object in the following format:
{
  "sections": [
    {
      "sectionId": "section-id-here",
      "confidence": 0.95,
      "reasoning": "Why this section must change"
    }
  ],
  "summary": "Brief summary of the planned edits"
}

Guidelines:
- Include EVERY section that must change to fulfil the request, not only the best match
  (e.g. "add a discount to pricing and mention it in the hero" touches two sections)
- Only use sectionIds from the list you are given
- Confidence is a number between 0.0 and 1.0

Return ONLY the JSON object."""

SECTION_EDIT_INSTRUCTION = """You are an expert front-end developer editing one existing section of a landing page. Apply the requested change while keeping the section's design, class prefixes and behaviour intact.

Respond strictly with a JSON object in the following format:
{
  "html": "Full updated HTML for this section",
  "css": "Full updated CSS for this section",
  "js": "Full updated JavaScript for this section, or an empty string"
}

- Change only what the request needs
- Keep the same class prefix system and semantic structure
- Keep responsive behaviour and accessibility features

Return ONLY the JSON object."""


def build_planning_prompt(prompt: str) -> str:
    return f"Create a structural plan for this landing page: {prompt}"


def build_section_prompt(section_plan: SectionPlan, page_plan: PagePlan, original_prompt: str) -> str:
    siblings = ", ".join(section.name for section in page_plan.sections)
    requirements = ", ".join(section_plan.requirements)
    return f"""
Original Request: {original_prompt}

Page Context:
- Title: {page_plan.title}
- Description: {page_plan.description}

Section to Generate:
- Type: {section_plan.type.value}
- Name: {section_plan.name}
- Description: {section_plan.description}
- Requirements: {requirements}

Other Sections in Page: {siblings}

Generate a professional {section_plan.type.value} section that fits the overall page theme and requirements."""


def build_edit_planning_prompt(user_prompt: str, page_plan: PagePlan) -> str:
    listing = "\n".join(
        f"- ID: {section.id}, Name: {section.name}, Type: {section.type.value}, "
        f"Description: {section.description}"
        for section in page_plan.sections
    )
    return f"""
User Request: "{user_prompt}"

Available Sections:
{listing}

Which sections does the user want to modify?"""


def build_section_edit_prompt(user_prompt: str, section: Section, page_plan: PagePlan) -> str:
    return f"""
User Request: "{user_prompt}"

Page Context:
- Title: {page_plan.title}
- Description: {page_plan.description}

Section to Edit:
- Name: {section.name}
- Type: {section.type.value}
- Current HTML:
---
{section.html}
---

- Current CSS:
---
{section.css or ''}
---

- Current JavaScript:
---
{section.js or ''}
---

Modify this section according to the user's request."""


__all__ = [
    "PLANNING_INSTRUCTION",
    "SECTION_GENERATION_INSTRUCTION",
    "EDIT_PLANNING_INSTRUCTION",
    "SECTION_EDIT_INSTRUCTION",
    "build_planning_prompt",
    "build_section_prompt",
    "build_edit_planning_prompt",
    "build_section_edit_prompt",
]
