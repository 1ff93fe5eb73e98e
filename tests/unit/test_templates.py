# tests/unit/test_templates.py
# Unit tests for the template asset store

import io
import shutil
import zipfile

import pytest

from resume_compiler.errors import TemplateAssetError, TemplateBundleError
from resume_compiler.templates import (
    copy_template_assets,
    install_template_bundle,
    list_templates,
    load_template,
    remove_template,
    sanitize_template_name,
)


def build_zip(entries):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def patch_central_header(data, offset, value):
    # single-entry archives only: one local header, one central record
    data = bytearray(data)
    start = data.find(b"PK\x01\x02")
    data[start + offset] = value
    return bytes(data)


class TestSanitizeTemplateName:

    # * Verify non-alphanumerics are stripped
    @pytest.mark.parametrize(
        "name, expected",
        [("My Template!", "MyTemplate"), ("awesome-cv_2", "awesomecv2"), ("../x", "x"), ("", "")],
    )
    def test_sanitize(self, name, expected):
        assert sanitize_template_name(name) == expected


class TestCopyTemplateAssets:

    # * Verify the whole tree lands in the destination
    def test_copies_tree(self, settings, make_template, tmp_path):
        make_template("Modern", {"fonts/Lato.ttf": b"font", "images/logo.png": b"png", "modern.cls": "cls"})
        dest = tmp_path / "ws"
        dest.mkdir()

        assert copy_template_assets("Modern", dest, settings.templates_dir) is True
        assert (dest / "fonts" / "Lato.ttf").read_bytes() == b"font"
        assert (dest / "images" / "logo.png").read_bytes() == b"png"
        assert (dest / "modern.cls").read_text() == "cls"

    # * Verify lookups use the sanitized identifier
    def test_identifier_is_sanitized(self, settings, make_template, tmp_path):
        make_template("MyTemplate", {"main.tex": "x"})
        assert copy_template_assets("My Template!", tmp_path, settings.templates_dir) is True
        assert (tmp_path / "main.tex").is_file()

    # * Verify an unknown template is not an error
    def test_missing_template(self, settings, tmp_path):
        assert copy_template_assets("Nope", tmp_path, settings.templates_dir) is False

    # * Verify copy failures surface as TemplateAssetError
    def test_copy_failure(self, settings, make_template, tmp_path, monkeypatch):
        make_template("Broken", {"main.tex": "x"})

        def failing_copytree(*args, **kwargs):
            raise shutil.Error([("a", "b", "permission denied")])

        monkeypatch.setattr(shutil, "copytree", failing_copytree)
        with pytest.raises(TemplateAssetError) as excinfo:
            copy_template_assets("Broken", tmp_path, settings.templates_dir)
        assert excinfo.value.status_code == 500
        assert "Broken" in excinfo.value.message


class TestReadTemplates:

    # * Verify only directories with a main.tex are listed
    def test_list_templates(self, settings, make_template):
        make_template("Classic", {"main.tex": "a"})
        make_template("Modern", {"main.tex": "b", "modern.cls": "c"})
        make_template("Incomplete", {"fonts/a.ttf": b""})
        assert list_templates(settings.templates_dir) == ["Classic", "Modern"]

    # * Verify an absent store lists nothing
    def test_list_without_store(self, settings):
        assert list_templates(settings.templates_dir) == []

    # * Verify load returns main.tex & class content
    def test_load_template(self, settings, make_template):
        make_template("Modern", {"main.tex": "\\documentclass{modern}", "modern.cls": "% cls"})
        bundle = load_template("Modern", settings.templates_dir)
        assert bundle.name == "Modern"
        assert bundle.content == "\\documentclass{modern}"
        assert bundle.cls_content == "% cls"

    # * Verify templates without class files & unknown names
    def test_load_without_cls_and_unknown(self, settings, make_template):
        make_template("Plain", {"main.tex": "x"})
        assert load_template("Plain", settings.templates_dir).cls_content is None
        assert load_template("Ghost", settings.templates_dir) is None


class TestInstallTemplateBundle:

    # * Verify a flat archive installs under the sanitized name
    def test_install(self, settings):
        archive = build_zip({"main.tex": "tex", "fancy.cls": "cls", "fonts/a.ttf": "font"})
        bundle = install_template_bundle("Fancy CV", archive, settings.templates_dir)

        target = settings.templates_dir / "FancyCV"
        assert bundle.name == "FancyCV"
        assert bundle.content == "tex"
        assert bundle.cls_content == "cls"
        assert (target / "fonts" / "a.ttf").read_text() == "font"

    # * Verify a single wrapping folder is stripped
    def test_nested_bundle_root(self, settings):
        archive = build_zip({"fancy/main.tex": "tex", "fancy/images/me.png": "png"})
        install_template_bundle("Fancy", archive, settings.templates_dir)
        target = settings.templates_dir / "Fancy"
        assert (target / "main.tex").is_file()
        assert (target / "images" / "me.png").is_file()

    # * Verify reinstalling replaces the previous tree
    def test_replaces_existing(self, settings, make_template):
        make_template("Fancy", {"main.tex": "old", "stale.png": b"x"})
        install_template_bundle("Fancy", build_zip({"main.tex": "new"}), settings.templates_dir)
        target = settings.templates_dir / "Fancy"
        assert (target / "main.tex").read_text() == "new"
        assert not (target / "stale.png").exists()

    # * Verify archives without main.tex are rejected
    def test_requires_main_tex(self, settings):
        with pytest.raises(TemplateBundleError) as excinfo:
            install_template_bundle("Fancy", build_zip({"readme.md": "hi"}), settings.templates_dir)
        assert excinfo.value.message == "ZIP must contain main.tex"
        assert list_templates(settings.templates_dir) == []
        assert list(settings.templates_dir.iterdir()) == []

    # * Verify non-zip payloads are rejected
    def test_bad_zip(self, settings):
        with pytest.raises(TemplateBundleError) as excinfo:
            install_template_bundle("Fancy", b"definitely not a zip", settings.templates_dir)
        assert excinfo.value.message == "Failed to read ZIP file"

    # * Verify encrypted entries are rejected as unreadable archives
    def test_encrypted_entry(self, settings):
        archive = build_zip({"main.tex": "tex"})
        # general purpose flag bit 0 marks the entry as encrypted
        archive = patch_central_header(archive, 8, 0x01)
        with pytest.raises(TemplateBundleError) as excinfo:
            install_template_bundle("Fancy", archive, settings.templates_dir)
        assert excinfo.value.message == "Failed to read ZIP file"
        assert "encrypted" in excinfo.value.details
        assert list(settings.templates_dir.iterdir()) == []

    # * Verify unsupported compression methods are rejected as unreadable archives
    def test_unsupported_compression(self, settings):
        archive = patch_central_header(build_zip({"main.tex": "tex"}), 10, 97)
        with pytest.raises(TemplateBundleError) as excinfo:
            install_template_bundle("Fancy", archive, settings.templates_dir)
        assert excinfo.value.message == "Failed to read ZIP file"

    # * Verify a main.tex directory entry is refused & the old install survives
    def test_main_tex_directory_entry(self, settings, make_template):
        make_template("Fancy", {"main.tex": "old"})
        archive = build_zip({"main.tex/": "", "fancy.cls": "cls"})
        with pytest.raises(TemplateBundleError) as excinfo:
            install_template_bundle("Fancy", archive, settings.templates_dir)
        assert excinfo.value.message == "ZIP must contain main.tex"
        assert (settings.templates_dir / "Fancy" / "main.tex").read_text() == "old"

    # * Verify entries escaping the template directory are refused
    def test_path_traversal(self, settings):
        archive = build_zip({"main.tex": "tex", "../../escape.txt": "boom"})
        with pytest.raises(TemplateBundleError) as excinfo:
            install_template_bundle("Fancy", archive, settings.templates_dir)
        assert excinfo.value.message == "Unsafe path in template archive"
        assert not (settings.templates_dir.parent / "escape.txt").exists()
        assert not (settings.templates_dir / "Fancy").exists()

    # * Verify unusable names are rejected
    def test_invalid_name(self, settings):
        with pytest.raises(TemplateBundleError):
            install_template_bundle("!!!", build_zip({"main.tex": "x"}), settings.templates_dir)


class TestRemoveTemplate:

    # * Verify removal & the not-found case
    def test_remove(self, settings, make_template):
        make_template("Modern", {"main.tex": "x"})
        assert remove_template("Modern", settings.templates_dir) is True
        assert not (settings.templates_dir / "Modern").exists()
        assert remove_template("Modern", settings.templates_dir) is False
