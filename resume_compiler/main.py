"""FastAPI application for the resume compilation service."""

import logging

import uvicorn
from fastapi import Depends, FastAPI, File, Form, Request, Response, UploadFile
from fastapi.responses import JSONResponse

from . import __version__
from .config import HOST, LOG_LEVEL, PORT, CompilerSettings
from .errors import CompilationFailure, TemplateBundleError
from .latex import compile_document
from .schemas import (
    CompileRequest,
    ErrorResponse,
    TemplateDeleted,
    TemplateDetail,
    TemplateListResponse,
    TemplateSummary,
)
from .templates import (
    find_class_file,
    install_template_bundle,
    list_templates,
    load_template,
    remove_template,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("resume_compiler.main")

app = FastAPI(title="Resume Compilation Service", version=__version__)


def get_settings() -> CompilerSettings:
    return CompilerSettings()


@app.exception_handler(CompilationFailure)
async def compilation_failure_handler(request: Request, exc: CompilationFailure):
    logger.warning("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(TemplateBundleError)
async def template_bundle_handler(request: Request, exc: TemplateBundleError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def _not_found(name: str) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"error": "Template not found", "details": f"No template named '{name}'."},
    )


@app.get("/health")
async def health():
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------

@app.post(
    "/api/compile",
    response_class=Response,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def api_compile(req: CompileRequest, settings: CompilerSettings = Depends(get_settings)):
    # Sync handler: runs in the threadpool while the engine blocks.
    pdf_bytes = compile_document(req, settings)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": "inline; filename=resume.pdf"},
    )


# ---------------------------------------------------------------------------
# Template asset store
# ---------------------------------------------------------------------------

@app.get("/api/templates", response_model=TemplateListResponse)
def api_list_templates(settings: CompilerSettings = Depends(get_settings)):
    root = settings.templates_dir
    return TemplateListResponse(
        templates=[
            TemplateSummary(name=name, has_class_file=find_class_file(root / name) is not None)
            for name in list_templates(root)
        ]
    )


@app.get(
    "/api/templates/{name}",
    response_model=TemplateDetail,
    responses={404: {"model": ErrorResponse}},
)
def api_get_template(name: str, settings: CompilerSettings = Depends(get_settings)):
    bundle = load_template(name, settings.templates_dir)
    if bundle is None:
        return _not_found(name)
    return TemplateDetail(name=bundle.name, content=bundle.content, cls_content=bundle.cls_content)


@app.post(
    "/api/templates",
    response_model=TemplateDetail,
    responses={400: {"model": ErrorResponse}},
)
def api_install_template(
    name: str = Form(...),
    bundle: UploadFile = File(...),
    settings: CompilerSettings = Depends(get_settings),
):
    archive = bundle.file.read()
    installed = install_template_bundle(name, archive, settings.templates_dir)
    return TemplateDetail(
        name=installed.name, content=installed.content, cls_content=installed.cls_content
    )


@app.delete(
    "/api/templates/{name}",
    response_model=TemplateDeleted,
    responses={404: {"model": ErrorResponse}},
)
def api_delete_template(name: str, settings: CompilerSettings = Depends(get_settings)):
    if not remove_template(name, settings.templates_dir):
        return _not_found(name)
    return TemplateDeleted(deleted=name)


def run() -> None:
    """Console entry point."""
    uvicorn.run(app, host=HOST, port=PORT)
