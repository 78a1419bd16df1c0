"""Postmortem - 错误分类

- StructuralError        : collection 校验失败（致命，不写任何输出）
- InvalidEnvironmentError: 显式提供的 environment 文档格式错误（致命，不写任何输出）
- EmissionError          : 单个文件写入失败（致命，中止剩余遍历；已写出的文件保留）
- CollectionReadError    : 输入文件无法读取或不是合法 JSON

脚本无法翻译不是错误：只体现在 TranslationResult.used_fallback 上。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


class CompileError(Exception):
    """所有编译期致命错误的基类。"""


@dataclass
class StructuralError(CompileError):
    errors: list[str]
    warnings: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"Invalid collection: {', '.join(self.errors)}"


@dataclass
class InvalidEnvironmentError(CompileError):
    errors: list[str]
    warnings: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"Invalid environment: {', '.join(self.errors)}"


@dataclass
class EmissionError(CompileError):
    """携带出错节点信息，便于定位是哪个 request / 文件写失败。"""

    path: str
    request_name: Optional[str] = None
    cause: Optional[BaseException] = None

    def __str__(self) -> str:
        if self.request_name:
            return f'Failed to write {self.path} for "{self.request_name}": {self.cause}'
        return f"Failed to write {self.path}: {self.cause}"


@dataclass
class CollectionReadError(CompileError):
    path: str
    reason: str

    def __str__(self) -> str:
        return f"Cannot read {self.path}: {self.reason}"
