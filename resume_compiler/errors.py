"""Failure types raised by the compilation pipeline and the template store."""

from typing import Dict


class CompilationFailure(Exception):
    """A compilation that ended without a PDF.

    ``message`` is a single line meant for a banner, ``details`` is the
    multi-line context shown underneath it.
    """

    status_code = 500

    def __init__(self, message: str, details: str = ""):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> Dict[str, str]:
        return {"error": self.message, "details": self.details}


class DocumentError(CompilationFailure):
    """The submitted document is malformed or failed to typeset."""

    status_code = 400


class EngineUnavailableError(CompilationFailure):
    """The typesetting engine is missing or cannot be executed."""


class WorkspaceError(CompilationFailure):
    """The per-request workspace could not be created."""


class TemplateAssetError(CompilationFailure):
    """A template's asset tree could not be copied into the workspace."""


class InternalCompilationError(CompilationFailure):
    """Anything unexpected that happened while compiling."""


class TemplateBundleError(Exception):
    """An uploaded template archive was rejected."""

    status_code = 400

    def __init__(self, message: str, details: str = ""):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> Dict[str, str]:
        return {"error": self.message, "details": self.details}
