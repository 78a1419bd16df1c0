"""
Postmortem - Collection / Environment 校验

职责：
- 对原始 JSON 文档做结构性检查，返回 ValidationReport（纯函数，无副作用）
- errors 非空即 ok=False；warnings 只做提示，不阻断
- 由 driver 决定把 ok=False 转成异常
"""

from __future__ import annotations

from typing import Any

from postmortem.models.compile_schemas import ValidationReport


def validate_collection(collection: Any) -> ValidationReport:
    errors: list[str] = []
    warnings: list[str] = []

    if not collection or not isinstance(collection, dict):
        errors.append("Collection is required")
        return ValidationReport(ok=False, errors=errors, warnings=warnings)

    info = collection.get("info")
    if not isinstance(info, dict):
        errors.append("Collection must have an info object")
    else:
        if not info.get("name"):
            warnings.append("Collection name is missing")
        if not info.get("schema"):
            warnings.append("Collection schema is missing")

    items = collection.get("item")
    if not isinstance(items, list):
        errors.append("Collection must have an items array")
    elif not items:
        warnings.append("Collection has no items")

    return ValidationReport(ok=not errors, errors=errors, warnings=warnings)


def validate_environment(environment: Any) -> ValidationReport:
    """environment 可选：None 永远通过。"""
    errors: list[str] = []
    warnings: list[str] = []

    if environment is None:
        return ValidationReport(ok=True, errors=errors, warnings=warnings)

    if not isinstance(environment, dict):
        errors.append("Environment must have a values array")
        return ValidationReport(ok=False, errors=errors, warnings=warnings)

    if not environment.get("name"):
        warnings.append("Environment name is missing")

    values = environment.get("values")
    if not isinstance(values, list):
        errors.append("Environment must have a values array")
    elif not values:
        warnings.append("Environment has no variables")
    else:
        for index, variable in enumerate(values):
            if not isinstance(variable, dict) or not variable.get("key"):
                warnings.append(f"Environment variable at index {index} is missing a key")

    return ValidationReport(ok=not errors, errors=errors, warnings=warnings)
