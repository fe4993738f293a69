from __future__ import annotations

import html
import io
import logging
import re
import zipfile
from typing import Callable, Sequence

from .formatter import CodeKind, format_code
from .models.plan import UNPLANNED_ORDER, PagePlan
from .models.section import GeneratedFiles, Section

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Generated Landing Page"
STYLESHEET_NAME = "style.css"
SCRIPT_NAME = "script.js"

BASE_CSS = """/* Global Styles */
* {
  margin: 0;
  padding: 0;
  box-sizing: border-box;
}

body {
  font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif;
  line-height: 1.6;
  color: #333;
}
"""

Formatter = Callable[[str, CodeKind], str]


def sort_sections(sections: Sequence[Section], page_plan: PagePlan | None) -> list[Section]:
    """Order by the plan's ``order`` value; ties keep their original position."""
    if page_plan is None:
        return list(sections)
    return sorted(sections, key=lambda section: page_plan.order_of(section.id))


def _compose_html(sections: Sequence[Section], page_plan: PagePlan | None) -> str:
    title = html.escape(page_plan.title) if page_plan and page_plan.title else DEFAULT_TITLE
    body = "\n".join(section.html for section in sections)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>{title}</title>
<link rel="stylesheet" href="{STYLESHEET_NAME}">
</head>
<body>
{body}
<script src="{SCRIPT_NAME}"></script>
</body>
</html>
"""


def _compose_css(sections: Sequence[Section], page_plan: PagePlan | None) -> str:
    parts = [BASE_CSS]
    if page_plan and page_plan.global_styles:
        parts.append(page_plan.global_styles)
    parts.extend(section.css for section in sections if section.css)
    return "\n\n".join(parts) + "\n"


def _compose_js(sections: Sequence[Section], page_plan: PagePlan | None) -> str:
    parts: list[str] = []
    if page_plan and page_plan.global_scripts:
        parts.append(page_plan.global_scripts)
    parts.extend(section.js for section in sections if section.js)
    body = "\n\n".join(parts)
    return f"document.addEventListener('DOMContentLoaded', function () {{\n{body}\n}});\n"


def _format(formatter: Formatter, code: str, kind: CodeKind) -> str:
    try:
        return formatter(code, kind)
    except Exception:
        logger.error("Formatter failed for %s, using unformatted output", kind, exc_info=True)
        return code


def compose_page(
    sections: Sequence[Section],
    page_plan: PagePlan | None = None,
    *,
    formatter: Formatter = format_code,
) -> GeneratedFiles:
    """Merge sections into standalone index.html / style.css / script.js contents.

    Pure and deterministic: the same sections and plan always produce the
    same files.
    """
    ordered = sort_sections(sections, page_plan)
    unplanned = []
    if page_plan is not None:
        unplanned = [section.id for section in ordered if page_plan.order_of(section.id) == UNPLANNED_ORDER]
    if unplanned:
        logger.warning("Composing sections missing from the plan", extra={"section_ids": unplanned})

    return GeneratedFiles(
        html=_format(formatter, _compose_html(ordered, page_plan), "html"),
        css=_format(formatter, _compose_css(ordered, page_plan), "css"),
        js=_format(formatter, _compose_js(ordered, page_plan), "js"),
    )


_STYLESHEET_LINK = re.compile(r"<link[^>]*rel=[\"']stylesheet[\"'][^>]*>\s*", re.IGNORECASE)
_STYLESHEET_HREF = re.compile(r"<link[^>]*href=[\"']style\.css[\"'][^>]*>\s*", re.IGNORECASE)
_SCRIPT_TAG = re.compile(r"<script[^>]*src=[\"']script\.js[\"'][^>]*>\s*</script>\s*", re.IGNORECASE)


def link_assets(files: GeneratedFiles) -> str:
    """Return the HTML referencing style.css/script.js exactly once each, when non-empty."""
    document = _STYLESHEET_LINK.sub("", files.html)
    document = _STYLESHEET_HREF.sub("", document)
    document = _SCRIPT_TAG.sub("", document)

    if files.css.strip():
        link = f'<link rel="stylesheet" href="{STYLESHEET_NAME}">'
        if "</head>" in document:
            document = document.replace("</head>", f"  {link}\n</head>", 1)
        elif "<head>" in document:
            document = document.replace("<head>", f"<head>\n  {link}", 1)
        else:
            document = f"<head>\n  {link}\n</head>\n{document}"

    if files.js.strip():
        script = f'<script src="{SCRIPT_NAME}"></script>'
        if "</body>" in document:
            document = document.replace("</body>", f"  {script}\n</body>", 1)
        else:
            document = f"{document}\n{script}"

    return document


def build_zip(files: GeneratedFiles) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("index.html", link_assets(files))
        archive.writestr(STYLESHEET_NAME, files.css)
        archive.writestr(SCRIPT_NAME, files.js)
    return buffer.getvalue()


__all__ = ["compose_page", "sort_sections", "link_assets", "build_zip", "BASE_CSS", "DEFAULT_TITLE"]
