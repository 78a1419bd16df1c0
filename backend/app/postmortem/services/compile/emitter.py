"""
Postmortem - Code Emitter

职责：
- emit_setup(): 生成共享的 setup.js（BASE_URL、env 绑定、可选的增强 api/helpers）
- emit_test():  为单个 Request 生成 Mocha 测试文件文本
- escape_js_string(): 唯一的字符串转义入口，名称 / 路径 / header / body / base URL 全部走这里

生成文件结构：
- 请求只在 before 钩子里发一次，结果保存在 response
- 翻译后的脚本若声明了 it(...)，顶层 it 块放在 describe 层，其余顶层语句复制进每个 it 回调体；
  否则整段包进一个默认 it
- 翻译 fallback 时插入默认状态码断言，原脚本以注释形式保留
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional

from postmortem.models.collection import EnvironmentMap, Header, RawBody, Request
from postmortem.models.compile_schemas import LayoutEntry, TranslationResult
from postmortem.services.compile.extract import split_absolute_url
from postmortem.services.compile.layout import setup_import_path
from postmortem.services.compile.script_split import inject_setup, split_tests
from postmortem.services.compile.translator import extract_test_names

SETUP_FILE_NAME = "setup.js"

PLAIN_DEFAULT_ASSERTION = "expect(response.status).to.be.oneOf([200, 201, 204]);"
ENHANCED_DEFAULT_ASSERTION = "expect(response.status).to.equal(200);"
DEFAULT_TEST_TITLE = "should respond with correct data"

_INDENT = "  "


# -----------------------------
# 转义
# -----------------------------

_CONTROL_ESCAPES = {
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\b": "\\b",
    "\f": "\\f",
    "\v": "\\v",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _escape_control(ch: str) -> str:
    if ch in _CONTROL_ESCAPES:
        return _CONTROL_ESCAPES[ch]
    if ord(ch) < 0x20 or ord(ch) == 0x7F:
        return f"\\u{ord(ch):04x}"
    return ch


def escape_js_string(value: Any) -> str:
    """转义顺序固定：反斜杠 -> 引号 -> 控制字符 -> 模板字符 ${。"""
    s = str(value).replace("\\", "\\\\")
    s = s.replace("'", "\\'").replace('"', '\\"').replace("`", "\\`")
    s = "".join(_escape_control(ch) for ch in s)
    return s.replace("${", "\\${")


def js_string(value: Any) -> str:
    return f"'{escape_js_string(value)}'"


def _indent_block(text: str, prefix: str) -> str:
    return "\n".join(f"{prefix}{line}" if line.strip() else "" for line in text.splitlines())


def _object_literal(mapping: dict[str, str], level: int) -> str:
    """{ 'k': 'v' } 形式的对象字面量，level 为闭合括号所在缩进层级。"""
    if not mapping:
        return "{}"
    inner = _INDENT * (level + 1)
    lines = [f"{inner}{js_string(k)}: {js_string(v)}," for k, v in mapping.items()]
    return "{\n" + "\n".join(lines) + "\n" + _INDENT * level + "}"


# -----------------------------
# Request 信息提取
# -----------------------------

_PATH_FALLBACK = re.compile(r"/[^?#]*")
# scheme://authority 前缀（如 https://{{host}}）
_AUTHORITY_PREFIX = re.compile(r"^\s*[A-Za-z][\w+.-]*://[^/?#]*")


def extract_path(url: Optional[str]) -> str:
    """只保留 path（有 query 时带上 ?query）；URL 无法解析时正则兜底，最终默认 '/'。"""
    parts = split_absolute_url(url)
    if parts is not None:
        path = parts.path or "/"
        return f"{path}?{parts.query}" if parts.query else path

    if url:
        m = _PATH_FALLBACK.search(_AUTHORITY_PREFIX.sub("", url, count=1))
        if m:
            return m.group(0)
    return "/"


_NO_BODY = object()


def extract_body(body: Optional[RawBody]) -> Any:
    """mode != raw 视为无 body；raw 优先按 JSON 解析，失败则用原字符串。"""
    if body is None or body.mode != "raw" or not body.raw:
        return _NO_BODY
    try:
        parsed = json.loads(body.raw)
    except ValueError:
        return body.raw
    return _NO_BODY if parsed is None else parsed


def has_body(value: Any) -> bool:
    return value is not _NO_BODY


def render_body(value: Any, level: int) -> str:
    if isinstance(value, str):
        return js_string(value)
    text = json.dumps(value, indent=2, ensure_ascii=False)
    # 续行与调用链对齐
    return text.replace("\n", "\n" + _INDENT * level)


def enabled_headers(headers: list[Header]) -> dict[str, str]:
    return {h.key: h.value for h in headers if h.key and not h.disabled}


def suite_name(request: Request, parent_name: Optional[str]) -> str:
    return f"{parent_name} - {request.name}" if parent_name else request.name


# -----------------------------
# setup.js
# -----------------------------

_ENHANCED_SETUP_HELPERS = """
// Thin API client over supertest
const api = {};
for (const method of ['get', 'post', 'put', 'patch', 'delete', 'head', 'options']) {
  api[method] = (path, body, options = {}) => {
    let req = request[method](path).timeout(DEFAULT_TIMEOUT);
    for (const [key, value] of Object.entries(options.headers || {})) {
      req = req.set(key, value);
    }
    if (body !== undefined) {
      req = req.send(body);
    }
    return req;
  };
}

function expectSuccess(response, validStatuses = [200, 201, 204]) {
  expect(response.status).to.be.oneOf(validStatuses);
}

function expectResponseTime(elapsedMs, maxMs = DEFAULT_TIMEOUT) {
  expect(elapsedMs).to.be.at.most(maxMs);
}
"""


def emit_setup(base_url: str, env: Optional[EnvironmentMap] = None, *, enhanced: bool = False) -> str:
    env_literal = _object_literal(env, 0) if env is not None else "null"

    parts = [
        "const supertest = require('supertest');",
        "const { expect } = require('chai');",
        "require('dotenv').config();",
        "",
        "// Base URL configuration",
        f"const BASE_URL = process.env.API_BASE_URL || {js_string(base_url)};",
        "const request = supertest(BASE_URL);",
        "",
        "// Environment variables from Postman",
        f"const env = {env_literal};",
        "",
        "// Request timeout configuration",
        "const DEFAULT_TIMEOUT = Number(process.env.TEST_TIMEOUT) || 10000;",
    ]
    exports = ["request", "expect", "env", "BASE_URL", "DEFAULT_TIMEOUT"]

    if enhanced:
        parts.append(_ENHANCED_SETUP_HELPERS.rstrip("\n"))
        exports += ["api", "expectSuccess", "expectResponseTime"]

    parts += ["", "module.exports = {"]
    parts += [f"{_INDENT}{name}," for name in exports]
    parts += ["};", ""]
    return "\n".join(parts)


# -----------------------------
# *.test.js
# -----------------------------

def _unconverted_comment(script: str) -> str:
    lines = ["// Unconverted Postman script:"]
    lines += [f"// {line}".rstrip() for line in script.splitlines()]
    return "\n".join(lines)


def _plain_request_call(method: str, path: str, body: Any, headers: dict[str, str]) -> str:
    chain = _INDENT * 3
    code = f"response = await request.{method}({js_string(path)})"
    for key, value in headers.items():
        code += f"\n{chain}.set({js_string(key)}, {js_string(value)})"
    if has_body(body):
        code += f"\n{chain}.send({render_body(body, 3)})"
    return code + ";"


def _enhanced_request_call(method: str, path: str, body: Any, headers: dict[str, str]) -> str:
    args = [js_string(path)]
    if has_body(body):
        args.append(render_body(body, 3))
    if headers:
        if not has_body(body):
            args.append("undefined")
        args.append("{ headers: " + _object_literal(headers, 3) + " }")
    return f"response = await api.{method}({', '.join(args)});"


def emit_test(
    request: Request,
    layout: LayoutEntry,
    translated: TranslationResult,
    *,
    parent_name: Optional[str] = None,
    enhanced: bool = False,
) -> str:
    method = (request.method or "GET").lower()
    path = extract_path(request.url)
    body = extract_body(request.body)
    headers = enabled_headers(request.headers)
    name = escape_js_string(suite_name(request, parent_name))
    setup_path = setup_import_path(layout.import_depth, SETUP_FILE_NAME)

    # 默认 it 内的断言 / describe 层的翻译脚本
    inner: list[str] = []
    suite_level: Optional[str] = None
    if translated.used_fallback:
        if request.script and request.script.strip():
            inner.append(_unconverted_comment(request.script))
        inner.append(ENHANCED_DEFAULT_ASSERTION if enhanced else PLAIN_DEFAULT_ASSERTION)
    else:
        text = translated.text.strip("\n")
        # 只有 pm.test 会被改写成 it(...)；源脚本里没有 test 声明就整体进默认 it
        parts = split_tests(text) if extract_test_names(request.script) else None
        if parts is None or not (parts.tests or parts.nested):
            inner.append(text)
        elif parts.nested:
            suite_level = text
        else:
            suite_level = "\n\n".join(inject_setup(block, parts.setup) for block in parts.tests)

    l1, l2, l3 = _INDENT, _INDENT * 2, _INDENT * 3
    if enhanced:
        lines = [
            "const { api, expect, expectSuccess, expectResponseTime, DEFAULT_TIMEOUT } = "
            f"require({js_string(setup_path)});",
            "",
            f"describe('{name}', function () {{",
            f"{l1}let response;",
            f"{l1}let elapsed;",
            "",
            f"{l1}before(async function () {{",
            f"{l2}const startTime = Date.now();",
            f"{l2}try {{",
            f"{l3}{_enhanced_request_call(method, path, body, headers)}",
            f"{l2}}} catch (error) {{",
            f"{l3}console.error('✗ {name} failed:', error.message);",
            f"{l3}throw error;",
            f"{l2}}}",
            f"{l2}elapsed = Date.now() - startTime;",
            f"{l2}console.log('✓ {name} - Status: ' + response.status + ', Time: ' + elapsed + 'ms');",
            f"{l1}}});",
            "",
            f"{l1}it('{DEFAULT_TEST_TITLE}', function () {{",
            f"{l2}expectSuccess(response);",
            f"{l2}expectResponseTime(elapsed, DEFAULT_TIMEOUT);",
        ]
        lines += [_indent_block(block, l2) for block in inner]
        lines.append(f"{l1}}});")
    else:
        lines = [
            f"const {{ request, expect }} = require({js_string(setup_path)});",
            "",
            f"describe('{name}', function () {{",
            f"{l1}let response;",
            "",
            f"{l1}before(async function () {{",
            f"{l2}{_plain_request_call(method, path, body, headers)}",
            f"{l1}}});",
        ]
        if inner:
            lines += ["", f"{l1}it('{DEFAULT_TEST_TITLE}', function () {{"]
            lines += [_indent_block(block, l2) for block in inner]
            lines.append(f"{l1}}});")

    if suite_level is not None:
        lines += ["", _indent_block(suite_level, l1)]

    lines += ["});", ""]
    return "\n".join(lines)
