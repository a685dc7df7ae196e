"""Turn a capture reference into document text and insert it."""

import os
import posixpath
from typing import Optional
from urllib.parse import quote

EMBED_STYLES = ("wikilink", "markdown")


def format_embed(reference: str, style: str = "wikilink") -> str:
    """Format a relative reference as an image embed.

    Args:
        reference: Relative reference such as "/remarkable_screenshots/a.png".
        style: "wikilink" (![[...]]) or "markdown" (![name](...)).

    Raises:
        ValueError: If the style is unknown.
    """
    target = reference.lstrip("/")
    if style == "wikilink":
        return f"![[{target}]]"
    if style == "markdown":
        alt = posixpath.basename(target)
        return f"![{alt}]({quote(target)})"
    raise ValueError(f"Unknown embed style '{style}'. Valid: {list(EMBED_STYLES)}")


def insert_embed(document_path: str, embed: str, placeholder: Optional[str] = None) -> str:
    """Insert an embed into a markdown document.

    Replaces the first occurrence of `placeholder` when given and present,
    otherwise appends the embed on its own line. The document is created
    if it does not exist.

    Returns:
        The new document text.
    """
    text = ""
    if os.path.exists(document_path):
        with open(document_path, 'r', encoding='utf-8') as f:
            text = f.read()

    if placeholder and placeholder in text:
        text = text.replace(placeholder, embed, 1)
    else:
        if text and not text.endswith("\n"):
            text += "\n"
        text += embed + "\n"

    parent = os.path.dirname(os.path.abspath(document_path))
    os.makedirs(parent, exist_ok=True)
    with open(document_path, 'w', encoding='utf-8') as f:
        f.write(text)

    return text
