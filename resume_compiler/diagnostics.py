"""Turn an engine log into one actionable error for the editor.

This is a best-effort scraper, not a LaTeX log parser. Matchers run in order
and the first one that recognises something wins; the last one always does.
Only the first error in a log is reported since the ones after it are usually
fallout from it.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

logger = logging.getLogger("resume_compiler.diagnostics")

GENERIC_MESSAGE = "LaTeX compilation failed"

# Lines after a "!" error that are inspected for context.
CONTEXT_WINDOW = 4
MAX_CONTEXT_LINE = 100
TAIL_LINES = 10


@dataclass(frozen=True)
class Diagnosis:
    message: str
    details: str


Matcher = Callable[[str, List[str]], Optional[Diagnosis]]


def read_log(path: Path) -> Optional[str]:
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8", errors="replace")


# ---------------------------------------------------------------------------
# Matchers
# ---------------------------------------------------------------------------

def _is_context_line(line: str) -> bool:
    return (
        bool(line)
        and not line.startswith("l.")
        and not line.startswith("?")
        and len(line) < MAX_CONTEXT_LINE
    )


def match_bang_error(log: str, lines: List[str]) -> Optional[Diagnosis]:
    """First ``!`` line, plus the short explanatory lines right after it."""
    for i, line in enumerate(lines):
        if not line.startswith("!"):
            continue
        captured = [line]
        for following in lines[i + 1:i + 1 + CONTEXT_WINDOW]:
            following = following.strip()
            if _is_context_line(following):
                captured.append(following)
        message = re.sub(r"^!\s*", "", line).strip() or GENERIC_MESSAGE
        return Diagnosis(message=message, details="\n".join(captured))
    return None


def match_error_label(log: str, lines: List[str]) -> Optional[Diagnosis]:
    for line in lines:
        if "Error:" in line:
            return Diagnosis(message=line.strip(), details=line)
    return None


def match_missing_begin_document(log: str, lines: List[str]) -> Optional[Diagnosis]:
    if not re.search(r"Missing \\begin\{document\}", log, re.IGNORECASE):
        return None
    return Diagnosis(
        message="Missing \\begin{document}",
        details=(
            "Your LaTeX document must include \\begin{document} and \\end{document} "
            "tags. Make sure your document has a complete structure."
        ),
    )


def match_undefined_control_sequence(log: str, lines: List[str]) -> Optional[Diagnosis]:
    match = re.search(r"Undefined control sequence[^\n]*", log, re.IGNORECASE)
    if not match:
        return None
    return Diagnosis(
        message=match.group(0).strip(),
        details="An undefined LaTeX command was used. Check for typos in command names.",
    )


def match_missing_file(log: str, lines: List[str]) -> Optional[Diagnosis]:
    match = re.search(r"File `[^']+' not found", log, re.IGNORECASE)
    if not match:
        return None
    return Diagnosis(
        message=match.group(0),
        details=(
            "A required LaTeX package or file is missing. You may need to install "
            "additional packages, or the template is missing one of its assets."
        ),
    )


def match_log_tail(log: str, lines: List[str]) -> Optional[Diagnosis]:
    tail = [line for line in lines if line.strip()][-TAIL_LINES:]
    return Diagnosis(
        message=GENERIC_MESSAGE,
        details="LaTeX compilation failed. Last log entries:\n" + "\n".join(tail),
    )


LOG_MATCHERS: List[Matcher] = [
    match_bang_error,
    match_error_label,
    match_missing_begin_document,
    match_undefined_control_sequence,
    match_missing_file,
    match_log_tail,
]


def diagnose_log(log: Optional[str], engine_output: str = "") -> Diagnosis:
    """Pick the most useful explanation for a failed run. Never raises."""
    if log is None:
        details = "The LaTeX engine did not produce a PDF or a log file."
        output_tail = [line for line in engine_output.splitlines() if line.strip()]
        if output_tail:
            details += "\n\nEngine output:\n" + "\n".join(output_tail[-TAIL_LINES:])
        return Diagnosis(message=GENERIC_MESSAGE, details=details)

    lines = log.splitlines()
    for matcher in LOG_MATCHERS:
        diagnosis = matcher(log, lines)
        if diagnosis is not None:
            logger.debug("Log diagnosed by %s", matcher.__name__)
            return diagnosis
    return match_log_tail(log, lines)
