"""
Annotation parser — turns a database comment into an Annotation record.

Comments may carry tags anywhere in the text:

    Customer e-mail address @type:Email @deprecated:"use contact_email"

Tags are ``@name`` or ``@name:value``; a value may be double-quoted to include
spaces. Everything that is not a tag becomes the description.
"""
import re
from typing import Optional

from models.schema import Annotation

TAG_RE = re.compile(r'(?<![\w@])@([A-Za-z_][\w-]*)(?::("[^"]*"|\S+))?')


def parse_annotation(raw: Optional[str]) -> Annotation:
    """Parse a raw comment. Never raises; absent or malformed input yields an empty Annotation."""
    if not isinstance(raw, str) or not raw.strip():
        return Annotation()

    tags: dict[str, str] = {}
    for match in TAG_RE.finditer(raw):
        value = match.group(2) or ""
        if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
            value = value[1:-1]
        tags.setdefault(match.group(1), value)

    text = TAG_RE.sub("", raw)
    lines = [" ".join(line.split()) for line in text.splitlines()]
    description = "\n".join(line for line in lines if line) or None

    type_override = tags.pop("type", None) or None
    deprecated = tags.pop("deprecated", None)
    fixed = tags.pop("fixed", None) is not None
    return Annotation(
        description=description,
        type_override=type_override,
        deprecated=deprecated,
        fixed=fixed,
        extra_tags=tags,
    )


def parse_optional_annotation(raw: Optional[str]) -> Optional[Annotation]:
    """Like parse_annotation, but returns None when the comment carries nothing."""
    annotation = parse_annotation(raw)
    return None if annotation.is_empty else annotation
