from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from postmortem.models.collection import EnvironmentMap


class ValidationReport(BaseModel):
    ok: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class CompileOptions(BaseModel):
    flatten: bool = Field(default=False, description="忽略目录结构，所有测试文件输出到根目录")
    emit_setup: bool = Field(default=True, description="是否生成 setup.js")
    enhanced: bool = Field(default=False, description="增强模式：计时 + 通用成功断言 + 错误日志")


class LayoutEntry(BaseModel):
    output_path: str
    import_depth: int = Field(default=0, ge=0)


class TranslationResult(BaseModel):
    text: str = ""
    used_fallback: bool = True


class CompileResult(BaseModel):
    files: int = 0
    folders: int = 0
    base_url: str
    environment: Optional[EnvironmentMap] = None
    warnings: list[str] = Field(default_factory=list)
    fallbacks: int = 0
    written: list[str] = Field(default_factory=list)


# --------------------------
# HTTP API Schemas
# --------------------------

class CompileCollectionRequest(BaseModel):
    collection: dict[str, Any]
    environment: Optional[dict[str, Any]] = None
    options: CompileOptions = Field(default_factory=CompileOptions)


class GeneratedFile(BaseModel):
    path: str
    content: str


class CompileCollectionResponse(BaseModel):
    ok: bool = True
    files: int
    folders: int
    base_url: str
    environment: Optional[EnvironmentMap] = None
    warnings: list[str] = Field(default_factory=list)
    fallbacks: int = 0
    outputs: list[GeneratedFile] = Field(default_factory=list)
