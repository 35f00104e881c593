"""Plain-text formatting of model replies for chat delivery."""
import re

_CODE_FENCE = re.compile(r"```.*?```", flags=re.DOTALL)
_HORIZONTAL_RULE = re.compile(r"^[ \t]*(?:[-*_][ \t]*){3,}$", flags=re.MULTILINE)
_HEADING = re.compile(r"^[ \t]*#+[ \t]+", flags=re.MULTILINE)
_BULLET = re.compile(r"^[ \t]*[*+-][ \t]+", flags=re.MULTILINE)
_NUMBERED = re.compile(r"^[ \t]*\d{1,2}\.[ \t]+", flags=re.MULTILINE)
_BOLD = re.compile(r"\*\*(.*?)\*\*")
_ITALIC = re.compile(r"\*(.*?)\*")
_STRIKE = re.compile(r"~~(.*?)~~")
_LINK = re.compile(r"\[(.*?)\]\(.*?\)")
_EXTRA_BLANK_LINES = re.compile(r"\n\s*\n")


def _strip_once(text: str) -> str:
    text = _CODE_FENCE.sub("", text)
    text = _HORIZONTAL_RULE.sub("", text)
    text = _HEADING.sub("", text)
    text = _BULLET.sub("", text)
    text = _NUMBERED.sub("", text)
    text = _BOLD.sub(r"\1", text)
    text = _ITALIC.sub(r"\1", text)
    text = _STRIKE.sub(r"\1", text)
    text = _LINK.sub(r"\1", text)
    text = _EXTRA_BLANK_LINES.sub("\n\n", text)
    return text.strip()


def remove_markdown(text: str) -> str:
    """
    Reduce Markdown to plain text suitable for a chat message.

    Removes headings, bold/italic/strikethrough markers, fenced code blocks,
    horizontal rules and list bullets/numbering (up to two digits, so a
    line starting with a year keeps it), keeps link text, and
    collapses runs of blank lines to a single paragraph break.

    Passes are repeated until nothing changes, so the result is stable:
    ``remove_markdown(remove_markdown(t)) == remove_markdown(t)``. Every
    substitution shortens the text, which bounds the number of passes.
    """
    while True:
        stripped = _strip_once(text)
        if stripped == text:
            return stripped
        text = stripped
