"""
Postmortem - Base URL / Environment 提取

在整个 collection 上只执行一次，结果交给 setup 模块生成。
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union
from urllib.parse import SplitResult, urlsplit

from postmortem.models.collection import Collection, EnvironmentMap, Group
from postmortem.services.collection.parser import parse_environment

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.example.com"


def split_absolute_url(url: Optional[str]) -> Optional[SplitResult]:
    """只有带 scheme 和 host 的 URL 才算解析成功；{{baseUrl}}/users、https://{{host}}/x 之类返回 None。"""
    if not url:
        return None
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    # 未替换的 Postman 变量不是合法 host
    if "{{" in parts.netloc or "}}" in parts.netloc:
        return None
    return parts


def extract_base_url(root: Union[Collection, Group]) -> tuple[str, list[str]]:
    """深度优先找到第一个可解析的 URL，取 scheme://host。

    找不到时返回占位 URL 和一条 warning，从不报错。
    """
    for request in root.iter_requests():
        parts = split_absolute_url(request.url)
        if parts is None:
            logger.debug(f"Could not parse URL: {request.url!r}")
            continue
        base_url = f"{parts.scheme}://{parts.netloc}"
        logger.debug(f"Found base URL: {base_url}")
        return base_url, []

    warning = f"Could not find a valid base URL in collection, using default {DEFAULT_BASE_URL}"
    logger.warning(warning)
    return DEFAULT_BASE_URL, [warning]


def extract_environment(
    raw_environment: Optional[dict[str, Any]],
    collection_variables: Optional[EnvironmentMap] = None,
) -> Optional[EnvironmentMap]:
    """environment 缺省时返回 None；否则 collection 变量打底、environment 覆盖。"""
    environment = parse_environment(raw_environment)
    if environment is None:
        return None

    merged: EnvironmentMap = dict(collection_variables or {})
    merged.update(environment)
    logger.debug(f"Extracted {len(merged)} environment variables")
    return merged
