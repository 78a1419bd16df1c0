"""
Postmortem - Collection Parser

职责：
- 把已通过校验的原始 collection JSON 转成 Collection / Group / Request 模型
- 节点类型在这里一次性确定：有 item 数组 -> Group；有 request -> Request
- 两者都没有的节点跳过并记录 warning
- 校验只检查顶层结构；节点内部字段类型不对时，跳过该节点或该字段并记录 warning（带节点路径），不抛异常
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from postmortem.models.collection import (
    Collection,
    EnvironmentMap,
    Group,
    Header,
    RawBody,
    Request,
)

logger = logging.getLogger(__name__)


def parse_collection(raw: dict[str, Any]) -> tuple[Collection, list[str]]:
    """返回 (collection, warnings)。调用方需先保证 validate_collection(raw).ok。"""
    warnings: list[str] = []
    info = raw.get("info") or {}

    children = _parse_items(raw.get("item") or [], warnings, trail="")
    schema = info.get("schema")
    collection = Collection(
        name=_to_text(info.get("name")) or "Unnamed Collection",
        schema_url=schema if isinstance(schema, str) else None,
        children=children,
        variables=_parse_variables(raw.get("variable")),
    )
    return collection, warnings


def parse_environment(raw: Optional[dict[str, Any]]) -> Optional[EnvironmentMap]:
    """values 列表拍平成 key -> value；缺 key 或缺 value 的条目跳过，重复 key 后者覆盖。"""
    if raw is None:
        return None
    return _parse_variables(raw.get("values"))


# -----------------------------
# 标量
# -----------------------------

def _to_text(value: Any) -> str:
    """JSON 标量转字符串：true -> "true"，1.5 -> "1.5"；None -> ""。"""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def _is_true(value: Any) -> bool:
    """disabled 之类的开关：只认 true / "true"。"""
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


# -----------------------------
# items
# -----------------------------

def _parse_items(items: list[Any], warnings: list[str], trail: str) -> list[Group | Request]:
    nodes: list[Group | Request] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            warnings.append(f"Skipping item {trail}[{index}]: not an object")
            continue

        name = _to_text(item.get("name")) or f"item-{index}"
        where = f"{trail}/{name}" if trail else name

        if isinstance(item.get("item"), list):
            nodes.append(
                Group(name=name, children=_parse_items(item["item"], warnings, trail=where))
            )
        elif item.get("request") is not None:
            request = _parse_request(name, where, item, warnings)
            if request is not None:
                nodes.append(request)
        else:
            warnings.append(f'Skipping item "{where}": neither a folder nor a request')
            logger.debug(f"skip item without item/request: {where}")
    return nodes


def _parse_request(name: str, where: str, item: dict[str, Any], warnings: list[str]) -> Optional[Request]:
    request = item["request"]
    script = _extract_test_script(item, where, warnings)

    # Postman 允许 request 直接写成 URL 字符串
    if isinstance(request, str):
        return Request(name=name, url=request, script=script)

    if not isinstance(request, dict):
        warnings.append(f'Skipping item "{where}": request must be an object or a URL string')
        return None

    return Request(
        name=name,
        method=_to_text(request.get("method")) or "GET",
        url=_url_to_string(request.get("url")),
        body=_parse_body(request.get("body"), where, warnings),
        headers=_parse_headers(request.get("header")),
        script=script,
    )


def _parse_body(body: Any, where: str, warnings: list[str]) -> Optional[RawBody]:
    if body is None:
        return None
    if not isinstance(body, dict):
        warnings.append(f'Ignoring body of "{where}": not an object')
        return None

    raw = body.get("raw")
    if raw is not None and not isinstance(raw, str):
        warnings.append(f'Ignoring body of "{where}": body.raw must be a string')
        return None
    return RawBody(mode=_to_text(body.get("mode")), raw=raw)


def _parse_headers(headers: Any) -> list[Header]:
    if not isinstance(headers, list):
        return []
    parsed: list[Header] = []
    for header in headers:
        if not isinstance(header, dict) or not header.get("key"):
            continue
        parsed.append(
            Header(
                key=_to_text(header["key"]),
                value=_to_text(header.get("value")),
                disabled=_is_true(header.get("disabled", False)),
            )
        )
    return parsed


def _url_to_string(url: Any) -> str:
    """url 可能是字符串，也可能是 {raw, protocol, host, path, query} 对象。"""
    if url is None:
        return ""
    if isinstance(url, str):
        return url
    if not isinstance(url, dict):
        return _to_text(url)

    if url.get("raw"):
        return _to_text(url["raw"])

    host = url.get("host") or []
    host = ".".join(_to_text(h) for h in host) if isinstance(host, list) else _to_text(host)
    path = url.get("path") or []
    path = "/".join(_to_text(p) for p in path) if isinstance(path, list) else _to_text(path).lstrip("/")

    text = f"{_to_text(url['protocol'])}://{host}" if url.get("protocol") else host
    if path:
        text = f"{text}/{path}"

    query = url.get("query")
    pairs = [
        f"{_to_text(q.get('key'))}={_to_text(q.get('value'))}"
        for q in (query if isinstance(query, list) else [])
        if isinstance(q, dict) and q.get("key") and not _is_true(q.get("disabled", False))
    ]
    if pairs:
        text = f"{text}?{'&'.join(pairs)}"
    return text


def _extract_test_script(item: dict[str, Any], where: str, warnings: list[str]) -> Optional[str]:
    events = item.get("event")
    if events is None:
        events = item.get("events")
    if not isinstance(events, list):
        return None

    for event in events:
        if not isinstance(event, dict) or event.get("listen") != "test":
            continue
        script = event.get("script")
        if script is None:
            return None
        if not isinstance(script, dict):
            warnings.append(f'Ignoring test script of "{where}": script must be an object')
            return None
        exec_ = script.get("exec")
        if isinstance(exec_, list):
            return "\n".join(_to_text(line) for line in exec_)
        if isinstance(exec_, str):
            return exec_
        if exec_ is not None:
            warnings.append(f'Ignoring test script of "{where}": exec must be a string or a list of lines')
        return None
    return None


def _parse_variables(values: Any) -> EnvironmentMap:
    variables: EnvironmentMap = {}
    if not isinstance(values, list):
        return variables
    for variable in values:
        if not isinstance(variable, dict):
            continue
        key, value = variable.get("key"), variable.get("value")
        if not key or value is None or value == "":
            continue
        variables[_to_text(key)] = _to_text(value)
    return variables
