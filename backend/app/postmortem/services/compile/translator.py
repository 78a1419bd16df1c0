"""
Postmortem - Script Translator (Deterministic)

职责：
- 把 Postman test 脚本（pm.* 调用风格）改写为 Mocha/Chai + Supertest 断言
- 不做 AST 解析：只是一张有序的 (pattern, replacement) 规则表，按表顺序各执行一次
- 没有任何规则命中时 used_fallback=True，由 emitter 插入默认断言

设计原则：
1) 规则顺序即优先级：test 声明、带状态码的完整断言必须先于通用 pm.expect 改写，
   否则会破坏捕获组
2) 只做一遍，不回扫自己的输出；后面规则的 replacement 不得匹配前面规则的 pattern
3) 响应耗时断言在 Supertest 中没有对应物，改写为注释标记而不是直接丢弃
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Union

from postmortem.models.compile_schemas import TranslationResult


Replacement = Union[str, Callable[["re.Match[str]"], str]]


@dataclass(frozen=True)
class RewriteRule:
    name: str
    pattern: "re.Pattern[str]"
    replacement: Replacement

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


def _lowercase_header(m: "re.Match[str]") -> str:
    return f'response.headers["{m.group(1).lower()}"]'


# -----------------------------
# 规则表（顺序即不变量）
# -----------------------------

RULES: tuple[RewriteRule, ...] = (
    # 1) pm.test("name" -> it("name"
    RewriteRule(
        "test_declaration",
        re.compile(r"""pm\.test\s*\(\s*["']([^"']+)["']"""),
        r'it("\1"',
    ),
    # 2) 完整的状态码相等断言
    RewriteRule(
        "status_equality",
        re.compile(r"pm\.expect\s*\(\s*pm\.response\.code\s*\)\.to\.equal\s*\(\s*(\d+)\s*\)"),
        r"expect(response.status).to.equal(\1)",
    ),
    RewriteRule(
        "status_have",
        re.compile(r"pm\.response\.to\.have\.status\s*\(\s*(\d+)\s*\)"),
        r"expect(response.status).to.equal(\1)",
    ),
    # 3) 其余状态码访问
    RewriteRule(
        "status_access",
        re.compile(r"pm\.response\.code\b"),
        "response.status",
    ),
    # 4) header 查找：key 统一小写（Node 的 header 对象 key 为小写）
    RewriteRule(
        "header_lookup",
        re.compile(r"""pm\.response\.headers\.get\s*\(\s*["']([^"']+)["']\s*\)"""),
        _lowercase_header,
    ),
    # 5) 响应体
    RewriteRule(
        "body_json",
        re.compile(r"pm\.response\.json\s*\(\s*\)"),
        "response.body",
    ),
    RewriteRule(
        "body_text",
        re.compile(r"pm\.response\.text\s*\(\s*\)"),
        "response.text",
    ),
    # 6) 通用 pm.expect
    RewriteRule(
        "expect_prefix",
        re.compile(r"pm\.expect\b"),
        "expect",
    ),
    # 7) 响应耗时：没有等价物，保留为注释
    RewriteRule(
        "response_time",
        re.compile(r"pm\.response\.responseTime\b"),
        "/* Response time not directly supported in Supertest */",
    ),
)


def translate(script: Optional[str], rules: tuple[RewriteRule, ...] = RULES) -> TranslationResult:
    """单遍改写；输出与输入完全相同（没有规则命中）即视为 fallback。"""
    if not script:
        return TranslationResult(text="", used_fallback=True)

    text = script
    for rule in rules:
        text = rule.apply(text)

    return TranslationResult(text=text, used_fallback=text == script)


_TEST_NAME = re.compile(r"""pm\.test\s*\(\s*["']([^"']+)["']""")
_ASSERTION_HINTS = (
    re.compile(r"pm\.test\s*\("),
    re.compile(r"pm\.expect\s*\("),
    re.compile(r"pm\.response\.to\.have"),
)


def extract_test_names(script: Optional[str]) -> list[str]:
    if not script:
        return []
    return _TEST_NAME.findall(script)


def has_assertions(script: Optional[str]) -> bool:
    if not script:
        return False
    return any(p.search(script) for p in _ASSERTION_HINTS)
