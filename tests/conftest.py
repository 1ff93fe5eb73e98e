# tests/conftest.py
# Shared fixtures: isolated settings, fake typesetting engine & template factory

import pytest

from resume_compiler.config import CompilerSettings
from tests.test_support.engine import FakeEngine


@pytest.fixture
# * Settings pointing every directory at tmp_path
def settings(tmp_path):
    return CompilerSettings(
        engine="xelatex",
        timeout=5,
        templates_dir=tmp_path / "templates",
        workspace_root=tmp_path / "workspaces",
    )


@pytest.fixture
# * Patch the engine lookup & subprocess call used by the compiler
def fake_engine(monkeypatch):
    engine = FakeEngine()
    monkeypatch.setattr("resume_compiler.latex.shutil.which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr("resume_compiler.latex.subprocess.run", engine)
    return engine


@pytest.fixture
# * Create a template directory in the asset store
def make_template(settings):
    def _make(name, files):
        template_dir = settings.templates_dir / name
        template_dir.mkdir(parents=True, exist_ok=True)
        for relative, content in files.items():
            path = template_dir / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
        return template_dir

    return _make
