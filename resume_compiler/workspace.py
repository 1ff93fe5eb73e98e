"""Per-request scratch directories and their background removal."""

import logging
import shutil
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import List

from .errors import WorkspaceError

logger = logging.getLogger("resume_compiler.workspace")

TEX_FILENAME = "resume.tex"
PDF_FILENAME = "resume.pdf"
LOG_FILENAME = "resume.log"

# Files the engine produces; a template tree must not pre-seed them.
ENGINE_OUTPUTS = [PDF_FILENAME, LOG_FILENAME]

_reaper = ThreadPoolExecutor(max_workers=2, thread_name_prefix="workspace-reaper")


def _workspace_name() -> str:
    return f"resume_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def create_workspace(root: Path) -> Path:
    """Create a fresh, uniquely named directory under ``root``."""
    workspace = Path(root) / _workspace_name()
    try:
        workspace.parent.mkdir(parents=True, exist_ok=True)
        workspace.mkdir()
    except OSError as exc:
        logger.error("Could not create workspace %s: %s", workspace, exc)
        raise WorkspaceError(
            "Could not create a compilation workspace",
            f"{exc}\n\nCheck that WORKSPACE_ROOT ({root}) exists and is writable.",
        ) from exc
    logger.debug("Created workspace %s", workspace)
    return workspace


def clear_stale_outputs(workspace: Path) -> None:
    """Drop engine outputs copied in from a template so a PDF means success."""
    for name in ENGINE_OUTPUTS:
        stale = workspace / name
        if stale.is_file():
            logger.debug("Removing pre-existing %s from %s", name, workspace)
            stale.unlink()


def list_workspace_files(workspace: Path) -> List[str]:
    try:
        return sorted(
            str(p.relative_to(workspace)) for p in workspace.rglob("*") if p.is_file()
        )
    except OSError as exc:
        logger.debug("Could not list %s: %s", workspace, exc)
        return []


def reap_workspace(workspace: Path) -> None:
    """Remove a workspace. Failures are logged and never raised."""
    try:
        shutil.rmtree(workspace)
        logger.debug("Removed workspace %s", workspace)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Failed to remove workspace %s: %s", workspace, exc)


def schedule_reap(workspace: Path) -> Future:
    """Queue ``reap_workspace`` on the background reaper and return at once."""
    return _reaper.submit(reap_workspace, workspace)
