"""Environment-driven configuration for the compilation service."""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

LATEX_ENGINE = os.getenv("LATEX_ENGINE", "xelatex")
LATEX_TIMEOUT = float(os.getenv("LATEX_TIMEOUT", "45"))
TEMPLATES_DIR = Path(os.getenv("TEMPLATES_DIR", "templates"))
WORKSPACE_ROOT = Path(
    os.getenv("WORKSPACE_ROOT", os.path.join(tempfile.gettempdir(), "resume-compiler"))
)


def resolve_log_level(name: str) -> str:
    """Upper-cased level name, or INFO when logging does not know it."""
    level = (name or "").strip().upper()
    return level if isinstance(logging.getLevelName(level), int) else "INFO"


LOG_LEVEL = resolve_log_level(os.getenv("LOG_LEVEL", "INFO"))

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))


@dataclass(frozen=True)
class CompilerSettings:
    """Knobs for one compilation; defaults come from the environment."""

    engine: str = LATEX_ENGINE
    timeout: float = LATEX_TIMEOUT
    templates_dir: Path = TEMPLATES_DIR
    workspace_root: Path = WORKSPACE_ROOT
