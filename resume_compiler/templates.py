"""Template asset store: named directories of fonts, images and class files.

Each template lives in ``<TEMPLATES_DIR>/<sanitized name>/`` and holds at least
a ``main.tex``. Compilation only ever reads from here; the install/remove
helpers back the template management routes.
"""

import io
import logging
import re
import shutil
import uuid
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import List, Optional

from .errors import TemplateAssetError, TemplateBundleError

logger = logging.getLogger("resume_compiler.templates")

MAIN_TEX = "main.tex"


@dataclass(frozen=True)
class TemplateBundle:
    name: str
    content: str
    cls_content: Optional[str] = None


def sanitize_template_name(name: str) -> str:
    """Keep only ASCII letters and digits, e.g. ``"My Template!"`` -> ``"MyTemplate"``."""
    return re.sub(r"[^a-zA-Z0-9]", "", name or "")


def template_path(identifier: str, root: Path) -> Optional[Path]:
    safe_name = sanitize_template_name(identifier)
    if not safe_name:
        return None
    return Path(root) / safe_name


def find_class_file(template_dir: Path) -> Optional[Path]:
    matches = sorted(template_dir.rglob("*.cls"))
    return matches[0] if matches else None


# ---------------------------------------------------------------------------
# Read side (used by the compiler)
# ---------------------------------------------------------------------------

def copy_template_assets(identifier: str, destination: Path, root: Path) -> bool:
    """Copy a template's full asset tree into ``destination``.

    Returns False when the store has no directory for ``identifier``. Any I/O
    failure while copying raises TemplateAssetError: a half-copied font or
    image directory would otherwise surface later as an opaque engine error.
    """
    source_dir = template_path(identifier, root)
    if source_dir is None or not source_dir.is_dir():
        logger.info("No asset directory for template %r", identifier)
        return False

    try:
        shutil.copytree(source_dir, destination, dirs_exist_ok=True)
    except OSError as exc:
        logger.error("Copying assets of template %r failed: %s", identifier, exc)
        raise TemplateAssetError(
            f"Could not load assets for template '{identifier}'",
            f"{exc}\n\nThe template installation on the server is incomplete or "
            "unreadable. Ask an administrator to re-upload the template.",
        ) from exc

    logger.info("Copied assets of template %r from %s", identifier, source_dir)
    return True


def list_templates(root: Path) -> List[str]:
    root = Path(root)
    if not root.is_dir():
        return []
    return sorted(
        entry.name
        for entry in root.iterdir()
        if entry.is_dir() and (entry / MAIN_TEX).is_file()
    )


def load_template(identifier: str, root: Path) -> Optional[TemplateBundle]:
    template_dir = template_path(identifier, root)
    if template_dir is None or not (template_dir / MAIN_TEX).is_file():
        return None

    content = (template_dir / MAIN_TEX).read_text(encoding="utf-8", errors="replace")
    cls_file = find_class_file(template_dir)
    cls_content = (
        cls_file.read_text(encoding="utf-8", errors="replace") if cls_file else None
    )
    return TemplateBundle(name=template_dir.name, content=content, cls_content=cls_content)


# ---------------------------------------------------------------------------
# Write side (template management)
# ---------------------------------------------------------------------------

def _bundle_prefix(names: List[str]) -> PurePosixPath:
    """Directory inside the archive that holds ``main.tex``; the shallowest wins."""
    candidates = [PurePosixPath(n) for n in names if PurePosixPath(n).name == MAIN_TEX]
    if not candidates:
        raise TemplateBundleError(
            "ZIP must contain main.tex",
            "Template archives need a main.tex next to their class file and assets.",
        )
    return min(candidates, key=lambda p: len(p.parts)).parent


def _extract_bundle(archive: zipfile.ZipFile, target: Path) -> None:
    prefix = _bundle_prefix(archive.namelist())
    target_root = target.resolve()

    for info in archive.infolist():
        member = PurePosixPath(info.filename)
        if info.is_dir():
            continue
        try:
            relative = member.relative_to(prefix)
        except ValueError:
            logger.debug("Skipping %s outside the bundle root %s", member, prefix)
            continue

        dest = (target / relative.as_posix()).resolve()
        if target_root not in dest.parents:
            raise TemplateBundleError(
                "Unsafe path in template archive",
                f"Entry '{info.filename}' would be written outside the template directory.",
            )
        dest.parent.mkdir(parents=True, exist_ok=True)
        with archive.open(info) as src, open(dest, "wb") as out:
            shutil.copyfileobj(src, out)


def install_template_bundle(name: str, archive: bytes, root: Path) -> TemplateBundle:
    """Extract a ZIP upload into the store, replacing any previous version."""
    safe_name = sanitize_template_name(name)
    if not safe_name:
        raise TemplateBundleError(
            "Invalid template name",
            "Template names need at least one letter or digit.",
        )

    root = Path(root)
    root.mkdir(parents=True, exist_ok=True)
    staging = root / f".{safe_name}.{uuid.uuid4().hex[:8]}.tmp"
    target = root / safe_name

    try:
        with zipfile.ZipFile(io.BytesIO(archive)) as bundle:
            staging.mkdir()
            _extract_bundle(bundle, staging)
        if not (staging / MAIN_TEX).is_file():
            raise TemplateBundleError(
                "ZIP must contain main.tex",
                "The archive's main.tex entry is not a regular file.",
            )
        if target.exists():
            shutil.rmtree(target)
        staging.rename(target)
    except (zipfile.BadZipFile, RuntimeError, NotImplementedError) as exc:
        # encrypted entries and unsupported compression methods land here too
        raise TemplateBundleError("Failed to read ZIP file", str(exc)) from exc
    finally:
        if staging.exists():
            shutil.rmtree(staging, ignore_errors=True)

    logger.info("Installed template %r into %s", safe_name, target)
    return load_template(safe_name, root)


def remove_template(identifier: str, root: Path) -> bool:
    template_dir = template_path(identifier, root)
    if template_dir is None or not template_dir.is_dir():
        return False
    shutil.rmtree(template_dir)
    logger.info("Removed template %r", template_dir.name)
    return True
