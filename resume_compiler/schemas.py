"""Pydantic request/response models for the compilation service."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# /api/compile
# ---------------------------------------------------------------------------

class CompileRequest(BaseModel):
    # The editor posts camelCase keys; snake_case works too.
    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(default="", alias="texContent")
    class_override: Optional[str] = Field(default=None, alias="clsContent")
    template_identifier: Optional[str] = Field(default=None, alias="templateName")


class ErrorResponse(BaseModel):
    error: str
    details: str = ""


# ---------------------------------------------------------------------------
# /api/templates
# ---------------------------------------------------------------------------

class TemplateSummary(BaseModel):
    name: str
    has_class_file: bool = False


class TemplateListResponse(BaseModel):
    templates: List[TemplateSummary]


class TemplateDetail(BaseModel):
    name: str
    content: str
    cls_content: Optional[str] = None


class TemplateDeleted(BaseModel):
    deleted: str
