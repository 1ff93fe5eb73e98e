"""Resume compilation: validate, stage a workspace, run the engine, report."""

import logging
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .config import CompilerSettings
from .diagnostics import GENERIC_MESSAGE, TAIL_LINES, diagnose_log, read_log
from .errors import (
    CompilationFailure,
    DocumentError,
    EngineUnavailableError,
    InternalCompilationError,
)
from .schemas import CompileRequest
from .templates import copy_template_assets, sanitize_template_name
from .workspace import (
    LOG_FILENAME,
    PDF_FILENAME,
    TEX_FILENAME,
    clear_stale_outputs,
    create_workspace,
    list_workspace_files,
    schedule_reap,
)

logger = logging.getLogger("resume_compiler.latex")

BEGIN_DOCUMENT = "\\begin{document}"
END_DOCUMENT = "\\end{document}"
DOCUMENT_CLASS = "\\documentclass"

DEFAULT_CLASS_NAME = "resume"
FALLBACK_TEMPLATE_CLASS = "custom"

# Group 1 is the command with its optional [...] options, group 2 the class name.
DOCUMENTCLASS_RE = re.compile(r"(\\documentclass(?:\[.*?\])?)\{(.*?)\}")


# ---------------------------------------------------------------------------
# Validation, before anything touches the filesystem
# ---------------------------------------------------------------------------

def validate_document(source: str) -> None:
    """Raise DocumentError for the first structural problem in ``source``."""
    if not source or not source.strip():
        raise DocumentError(
            "Empty LaTeX content",
            "Please provide LaTeX content to compile.",
        )
    if BEGIN_DOCUMENT not in source:
        raise DocumentError(
            "Missing \\begin{document}",
            "Your LaTeX document must include \\begin{document} and \\end{document} tags.\n\n"
            "Make sure your document has:\n"
            "- \\documentclass{...}\n"
            "- \\begin{document}\n"
            "- Your content\n"
            "- \\end{document}",
        )
    if END_DOCUMENT not in source:
        raise DocumentError(
            "Missing \\end{document}",
            "Your LaTeX document must include \\end{document} at the end.",
        )
    if DOCUMENT_CLASS not in source:
        raise DocumentError(
            "Missing \\documentclass",
            "Your LaTeX document must start with \\documentclass{...} declaration.",
        )


# ---------------------------------------------------------------------------
# Class file handling
# ---------------------------------------------------------------------------

def resolve_class_name(source: str, template_identifier: Optional[str] = None) -> str:
    """Name used for both the ``.cls`` file and the rewritten declaration."""
    if template_identifier:
        return sanitize_template_name(template_identifier) or FALLBACK_TEMPLATE_CLASS

    match = DOCUMENTCLASS_RE.search(source)
    if match:
        # The name becomes a file name inside the workspace.
        declared = re.sub(r"[^A-Za-z0-9_-]", "", match.group(2).strip())
        if declared:
            return declared
    return DEFAULT_CLASS_NAME


def rewrite_document_class(source: str, class_name: str) -> str:
    """Point the first ``\\documentclass`` at ``class_name``, keeping its options."""
    return DOCUMENTCLASS_RE.sub(
        lambda m: f"{m.group(1)}{{{class_name}}}", source, count=1
    )


def prepare_source(request: CompileRequest, workspace: Path) -> str:
    """Write the class override (if any) and return the source to compile."""
    if not request.class_override:
        return request.source

    class_name = resolve_class_name(request.source, request.template_identifier)
    cls_path = workspace / f"{class_name}.cls"
    with open(cls_path, "w", encoding="utf-8", newline="") as fh:
        fh.write(request.class_override)
    logger.info("Wrote class file %s", cls_path.name)
    return rewrite_document_class(request.source, class_name)


# ---------------------------------------------------------------------------
# Engine invocation
# ---------------------------------------------------------------------------

@dataclass
class EngineRun:
    returncode: Optional[int]
    output: str = ""
    timed_out: bool = False


def _engine_missing(engine: str, reason: str = "") -> EngineUnavailableError:
    details = (
        "Please install a LaTeX distribution that provides "
        f"'{engine}':\n\n"
        "Linux: install TeX Live (e.g. apt install texlive-xetex texlive-fonts-extra)\n"
        "macOS: install MacTeX from https://www.tug.org/mactex/\n"
        "Windows: install MiKTeX from https://miktex.org/ or TeX Live from "
        "https://www.tug.org/texlive/\n\n"
        f"After installation, restart the server. To verify, run: {engine} --version"
    )
    if reason:
        details = f"{reason}\n\n{details}"
    return EngineUnavailableError(
        f"LaTeX ({engine}) is not installed or not in your system PATH", details
    )


def run_engine(workspace: Path, engine: str, timeout: float) -> EngineRun:
    """Run the engine once inside ``workspace`` in non-interactive mode."""
    executable = shutil.which(engine)
    if not executable:
        logger.error("%s not found on PATH, cannot compile", engine)
        raise _engine_missing(engine)

    cmd = [
        executable,
        "-interaction=nonstopmode",
        "-output-directory=.",
        TEX_FILENAME,
    ]
    try:
        result = subprocess.run(
            cmd,
            cwd=workspace,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        logger.error("%s timed out after %s seconds", engine, timeout)
        output = exc.stdout or ""
        if isinstance(output, bytes):
            output = output.decode("utf-8", errors="replace")
        return EngineRun(returncode=None, output=output, timed_out=True)
    except (FileNotFoundError, PermissionError) as exc:
        logger.error("%s could not be executed: %s", engine, exc)
        raise _engine_missing(engine, str(exc)) from exc

    logger.info("%s exit code: %d", engine, result.returncode)
    return EngineRun(
        returncode=result.returncode,
        output=(result.stdout or "") + (result.stderr or ""),
    )


# ---------------------------------------------------------------------------
# Result extraction
# ---------------------------------------------------------------------------

def extract_result(workspace: Path, run: EngineRun, timeout: float) -> bytes:
    """Return the PDF bytes, or raise DocumentError describing the failure.

    A PDF on disk is what counts as success; engines often exit non-zero on
    recoverable problems and still produce usable output.
    """
    pdf_path = workspace / PDF_FILENAME

    if run.timed_out:
        details = (
            f"Compilation timed out after {timeout:g} seconds and was stopped. "
            "Look for runaway loops or very large images in your document."
        )
        output_tail = [line for line in run.output.splitlines() if line.strip()]
        if output_tail:
            details += "\n\nEngine output:\n" + "\n".join(output_tail[-TAIL_LINES:])
        raise DocumentError(GENERIC_MESSAGE, details)

    if pdf_path.is_file():
        pdf_bytes = pdf_path.read_bytes()
        logger.info("PDF compiled successfully (%d bytes)", len(pdf_bytes))
        return pdf_bytes

    logger.debug("Compile failed. Workspace files: %s", list_workspace_files(workspace))
    diagnosis = diagnose_log(read_log(workspace / LOG_FILENAME), run.output)
    logger.error("LaTeX compilation failed: %s", diagnosis.message)
    raise DocumentError(diagnosis.message, diagnosis.details)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def compile_document(
    request: CompileRequest,
    settings: Optional[CompilerSettings] = None,
    schedule_cleanup: Callable[[Path], object] = schedule_reap,
) -> bytes:
    """Compile ``request`` to PDF bytes.

    Raises CompilationFailure (or a subclass) for every failure; anything
    unexpected is wrapped in InternalCompilationError. The workspace is handed
    to ``schedule_cleanup`` exactly once, whatever the outcome.
    """
    settings = settings or CompilerSettings()
    validate_document(request.source)

    workspace = None
    try:
        workspace = create_workspace(settings.workspace_root)

        if request.template_identifier:
            copy_template_assets(
                request.template_identifier, workspace, settings.templates_dir
            )
            clear_stale_outputs(workspace)

        source = prepare_source(request, workspace)
        with open(workspace / TEX_FILENAME, "w", encoding="utf-8", newline="") as fh:
            fh.write(source)

        run = run_engine(workspace, settings.engine, settings.timeout)
        return extract_result(workspace, run, settings.timeout)
    except CompilationFailure:
        raise
    except Exception as exc:
        logger.exception("Unexpected error while compiling")
        raise InternalCompilationError("Compilation failed", str(exc)) from exc
    finally:
        if workspace is not None:
            try:
                schedule_cleanup(workspace)
            except Exception:
                logger.warning("Could not schedule cleanup of %s", workspace, exc_info=True)
