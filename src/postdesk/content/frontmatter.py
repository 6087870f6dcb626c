"""MDX frontmatter container format.

Posts are stored as an exported JS constant holding the metadata, a blank
line, then the Markdown body::

    export const frontmatter = {
      "title": "Hello"
    }

    Body text...

The metadata literal is read with a strict JSON parser; it is never
evaluated.  The serializer always emits JSON, so anything this module
writes it can read back.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from postdesk.content.models import ParsedDocument
from postdesk.errors import FrontmatterError

logger = logging.getLogger(__name__)

FRONTMATTER_PREFIX = "export const frontmatter = "

# The first "}" followed by a blank line closes the block. Pretty-printed
# JSON never has a blank line inside it, and string values escape newlines.
_FRONTMATTER_RE = re.compile(
    r"\A" + re.escape(FRONTMATTER_PREFIX) + r"(\{.*?\})[ \t]*\n\n(.*)\Z",
    re.DOTALL,
)


def parse_frontmatter(text: str, *, strict: bool = False) -> ParsedDocument:
    """Split MDX text into its metadata mapping and body.

    Text without a leading metadata block is returned whole as the body
    with empty metadata.  A block that is present but is not a JSON object
    raises FrontmatterError when ``strict`` is set; otherwise the failure
    is logged and recorded on ``ParsedDocument.error`` and the text is
    returned whole as the body.
    """
    match = _FRONTMATTER_RE.match(text)
    if match is None:
        return ParsedDocument(frontmatter={}, body=text)

    literal, body = match.group(1), match.group(2)
    try:
        frontmatter = json.loads(literal)
        if not isinstance(frontmatter, dict):
            raise ValueError(f"expected an object, got {type(frontmatter).__name__}")
    except ValueError as exc:
        message = f"Invalid frontmatter: {exc}"
        if strict:
            raise FrontmatterError(message) from exc
        logger.warning("Could not parse frontmatter block: %s", exc)
        return ParsedDocument(frontmatter={}, body=text, error=message)

    return ParsedDocument(frontmatter=frontmatter, body=body.removesuffix("\n"))


def serialize_frontmatter(frontmatter: dict[str, Any], body: str) -> str:
    """Render metadata and body back into the MDX container format."""
    try:
        literal = json.dumps(frontmatter, indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise FrontmatterError(f"Frontmatter is not serializable: {exc}") from exc
    return f"{FRONTMATTER_PREFIX}{literal}\n\n{body}\n"
