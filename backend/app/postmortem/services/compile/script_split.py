"""
Postmortem - 翻译后脚本的顶层拆分

生成的测试文件里请求在 before 钩子中才发出，describe 层的代码在 mocha 加载文件时就会执行，
此时 response 还没有赋值。所以翻译后的脚本要拆成两部分：
- tests: 顶层的 it(...) 块，放在 describe 层
- setup: 其余顶层语句（如 const data = response.body;），复制到每个 it 回调体的开头

只做轻量扫描（括号深度 + 跳过字符串 / 模板 / 注释 / 正则字面量），不做完整 JS 解析。
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterator, Optional

_TEST_CALL = re.compile(r"it\s*\(")
_IDENT_CHAR = re.compile(r"[\w.$]")
_TRAILING_SEMICOLON = re.compile(r"[ \t]*;")

_OPENERS = "([{"
_CLOSERS = ")]}"

# 这些字符之后出现的 / 视为正则字面量的开始
_REGEX_PRECEDERS = set("(,=:[!&|?{};+-*%<>~^")

# 上一行以这些字符结尾时，换行不构成语句边界
_CONTINUATION = set("=,(+-*/%&|?:[.<>!")

_INDENT = "  "


@dataclass
class ScriptParts:
    setup: str = ""
    tests: list[str] = field(default_factory=list)
    # it(...) 出现在其他语句内部（如 if 块中），无法安全拆分
    nested: bool = False


# -----------------------------
# 扫描
# -----------------------------

def _skip_quoted(text: str, i: int) -> int:
    quote = text[i]
    i += 1
    while i < len(text):
        c = text[i]
        if c == "\\":
            i += 2
            continue
        if c == quote or c == "\n":
            return i + 1
        i += 1
    return i


def _skip_template(text: str, i: int) -> int:
    i += 1
    while i < len(text):
        c = text[i]
        if c == "\\":
            i += 2
            continue
        if c == "`":
            return i + 1
        if text.startswith("${", i):
            depth = 0
            end = len(text)
            for j, ch in _code_positions(text, i + 2):
                if ch in _OPENERS:
                    depth += 1
                elif ch in _CLOSERS:
                    if depth == 0:
                        end = j + 1
                        break
                    depth -= 1
            i = end
            continue
        i += 1
    return i


def _skip_regex(text: str, i: int) -> int:
    i += 1
    in_class = False
    while i < len(text):
        c = text[i]
        if c == "\\":
            i += 2
            continue
        if c == "\n":
            return i
        if in_class:
            if c == "]":
                in_class = False
        elif c == "[":
            in_class = True
        elif c == "/":
            return i + 1
        i += 1
    return i


def _code_positions(text: str, start: int = 0) -> Iterator[tuple[int, str]]:
    """产出不在字符串 / 模板 / 注释 / 正则字面量内的 (下标, 字符)。"""
    i, n = start, len(text)
    prev = ""
    while i < n:
        c = text[i]
        if c in "'\"":
            i, prev = _skip_quoted(text, i), c
            continue
        if c == "`":
            i, prev = _skip_template(text, i), c
            continue
        if text.startswith("//", i):
            j = text.find("\n", i)
            i = n if j < 0 else j
            continue
        if text.startswith("/*", i):
            j = text.find("*/", i + 2)
            i = n if j < 0 else j + 2
            continue
        if c == "/" and (not prev or prev in _REGEX_PRECEDERS):
            i, prev = _skip_regex(text, i), "/"
            continue
        yield i, c
        if not c.isspace():
            prev = c
        i += 1


def _is_test_call(text: str, i: int) -> bool:
    if not _TEST_CALL.match(text, i):
        return False
    return i == 0 or not _IDENT_CHAR.match(text[i - 1])


def _at_statement_start(prev: Optional[str], newline_since_prev: bool) -> bool:
    if prev is None or prev in ";{}":
        return True
    return newline_since_prev and prev not in _CONTINUATION


# -----------------------------
# 拆分 / 注入
# -----------------------------

def split_tests(text: str) -> ScriptParts:
    """把脚本拆成顶层 it(...) 块与其余语句。"""
    parts = ScriptParts()
    spans: list[tuple[int, int]] = []

    depth = 0
    prev: Optional[str] = None
    newline_since_prev = False
    block_start: Optional[int] = None
    skip_until = 0

    for i, c in _code_positions(text):
        if i < skip_until:
            continue
        if c == "\n":
            newline_since_prev = True
            continue

        if block_start is None and c == "i" and _is_test_call(text, i):
            if depth == 0 and _at_statement_start(prev, newline_since_prev):
                block_start = i
            elif depth > 0:
                parts.nested = True

        if c in _OPENERS:
            depth += 1
        elif c in _CLOSERS:
            depth = max(depth - 1, 0)
            if depth == 0 and block_start is not None and c == ")":
                end = i + 1
                m = _TRAILING_SEMICOLON.match(text, end)
                if m:
                    end = m.end()
                spans.append((block_start, end))
                block_start = None
                skip_until = end
                prev, newline_since_prev = ";", False
                continue

        if not c.isspace():
            prev = c
            newline_since_prev = False

    cursor = 0
    setup_lines: list[str] = []
    for start, end in spans:
        parts.tests.append(text[start:end])
        setup_lines += text[cursor:start].splitlines()
        cursor = end
    setup_lines += text[cursor:].splitlines()
    parts.setup = "\n".join(line.rstrip() for line in setup_lines if line.strip())
    return parts


def _callback_body(block: str) -> tuple[Optional[int], Optional[tuple[int, int]]]:
    """定位 it(...) 回调：返回 (函数体 { 的下标, None) 或 (None, 箭头表达式体的 [start, end))。"""
    depth = 0
    after_name = False
    arrow_at: Optional[int] = None
    for i, c in _code_positions(block):
        if c in _OPENERS:
            if c == "{" and depth == 1 and after_name:
                return i, None
            depth += 1
        elif c in _CLOSERS:
            depth -= 1
            if depth == 0:
                if arrow_at is not None:
                    return None, (arrow_at, i)
                return None, None
        elif depth == 1 and c == ",":
            if arrow_at is not None:
                return None, (arrow_at, i)
            after_name = True
        elif depth == 1 and after_name and block.startswith("=>", i):
            arrow_at = i + 2
    return None, None


def inject_setup(block: str, setup: str) -> str:
    """把 setup 语句放到 it 回调体的最前面，让它们在 before 发出请求之后才执行。"""
    if not setup:
        return block

    setup_block = "\n".join(f"{_INDENT}{line}" for line in setup.splitlines())
    brace, arrow_body = _callback_body(block)
    if brace is not None:
        rest = block[brace + 1:].lstrip(" ")
        if not rest.startswith("\n"):
            rest = "\n" + rest
        return f"{block[:brace + 1]}\n{setup_block}{rest}"
    if arrow_body is not None:
        start, end = arrow_body
        expr = block[start:end].strip()
        return f"{block[:start]} {{\n{setup_block}\n{_INDENT}return {expr};\n}}{block[end:]}"
    # it('pending') 之类没有回调的声明原样保留
    return block
