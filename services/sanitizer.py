# FILE: services/sanitizer.py
"""
Text sanitation at both edges of a turn.

- sanitize_chat_message(): inbound, strips XSS vectors and invisible chars
- sanitize_reply(): outbound, strips internal control markers
"""

import re

MAX_MESSAGE_LENGTH = 50_000

_script_re = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_protocol_re = re.compile(r"(?:javascript|vbscript):", re.IGNORECASE)
_data_url_re = re.compile(r"data:(?!image/(?:png|jpe?g|gif|webp);base64,)", re.IGNORECASE)
_event_handler_re = re.compile(r"\bon\w+\s*=", re.IGNORECASE)
_invisible_re = re.compile("[\u200b-\u200d\ufeff\u00ad]")
_control_re = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_chat_message(text: str) -> str:
    """Light sanitization for chat content: remove XSS vectors, keep the words."""
    if not text or not isinstance(text, str):
        return ""
    cleaned = _script_re.sub("", text)
    cleaned = _protocol_re.sub("", cleaned)
    cleaned = _data_url_re.sub("", cleaned)
    cleaned = _event_handler_re.sub("", cleaned)
    cleaned = _invisible_re.sub("", cleaned)
    cleaned = _control_re.sub("", cleaned)
    return cleaned.strip()[:MAX_MESSAGE_LENGTH]


# -----------------------------
# Internal markers
# -----------------------------
MARKER_LABELS = (
    "DEBUG", "INTERNAL", "SYSTEM", "CONTEXT", "INTENT", "PATTERN",
    "RECORD_ALREADY_SAVED", "ALREADY_SAVED", "TOOL_CALL", "TRACE",
)
_labels = "|".join(MARKER_LABELS)

# "[INTENT: AddExpense]" or "<<DEBUG>>" alone on a line
_marker_line_re = re.compile(
    rf"^\s*(?:\[(?:{_labels})(?:[:=][^\]\n]*)?\]|<<(?:{_labels})[^>\n]*>>)\s*$",
    re.IGNORECASE,
)
# Upper-case debug labels only, "Context: ..." is ordinary prose
_debug_line_re = re.compile(r"^\s*(?:DEBUG|INTERNAL|TRACE)\s*:.*$")
# Marker fragment left dangling at the very end, possibly cut off
_trailing_marker_re = re.compile(
    rf"\s*(?:\[(?:{_labels})[^\]\n]*\]?|<<(?:{_labels})[^\n]*)\s*$",
    re.IGNORECASE,
)


def sanitize_reply(text: str) -> str:
    """
    Drop lines that are only internal markers and any marker fragment at the
    end. Never sanitizes a reply away entirely: if nothing would remain, the
    original trimmed text is returned.
    """
    if not text:
        return ""
    original = text.strip()

    kept = [
        line for line in text.splitlines()
        if not _marker_line_re.match(line) and not _debug_line_re.match(line)
    ]
    cleaned = "\n".join(kept).strip()
    while True:
        trimmed = _trailing_marker_re.sub("", cleaned).rstrip()
        if trimmed == cleaned:
            break
        cleaned = trimmed
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned).strip()

    return cleaned or original
