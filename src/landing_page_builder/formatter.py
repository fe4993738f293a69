from __future__ import annotations

import logging
from typing import Literal

import cssbeautifier
import jsbeautifier
from bs4 import BeautifulSoup
from bs4.dammit import EntitySubstitution
from bs4.formatter import HTMLFormatter

logger = logging.getLogger(__name__)

CodeKind = Literal["html", "css", "js"]

INDENT_SIZE = 2

# Re-serializes markup without adding whitespace between inline nodes; void
# elements keep their HTML form (``<br>``, not ``<br/>``).
HTML_FORMATTER = HTMLFormatter(
    entity_substitution=EntitySubstitution.substitute_xml,
    void_element_close_prefix=None,
)


def _beautifier_options(module):
    options = module.default_options()
    options.indent_size = INDENT_SIZE
    return options


def format_code(code: str, kind: CodeKind) -> str:
    """Normalize ``code`` for its kind; on any formatter error return it unchanged.

    HTML is parsed and re-serialized, which balances tags but never reflows
    text, so the rendered page is identical. CSS and JS are pretty-printed.
    """
    if not code or not code.strip():
        return code

    try:
        if kind == "html":
            return BeautifulSoup(code, "html.parser").decode(formatter=HTML_FORMATTER)
        if kind == "css":
            return cssbeautifier.beautify(code, _beautifier_options(cssbeautifier))
        if kind == "js":
            return jsbeautifier.beautify(code, _beautifier_options(jsbeautifier))
    except Exception:
        logger.error("Error formatting %s code", kind, exc_info=True)
        return code

    return code


__all__ = ["format_code", "CodeKind"]
