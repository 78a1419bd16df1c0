"""
Postmortem - Layout Planner

职责：
- 前序遍历 collection 树，给每个 Group 分配目录、给每个 Request 分配文件名
- 计算每个测试文件回到输出根目录的层数（import_depth），用于引用 setup.js
- 产出需要预先创建的目录列表（按首次出现顺序）

约定：
- 输出路径均为相对输出根目录的 POSIX 路径
- flatten=True 时 Group 不贡献路径段，但仍会被遍历并计入 folders
- 空 Group 不产生目录、不计数
- 同目录下文件名冲突不报错（后写覆盖），只记录到 collisions
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Union

from postmortem.models.collection import Collection, Group, Request
from postmortem.models.compile_schemas import LayoutEntry

logger = logging.getLogger(__name__)

TEST_EXTENSION = ".test.js"


@dataclass
class PlannedRequest:
    request: Request
    layout: LayoutEntry
    parent_name: Optional[str] = None


@dataclass
class LayoutPlan:
    entries: list[PlannedRequest] = field(default_factory=list)
    directories: list[str] = field(default_factory=list)
    folders: int = 0
    collisions: list[str] = field(default_factory=list)

    def layout_for(self, request: Request) -> LayoutEntry:
        """按对象身份查找（同名 Request 也能区分）。"""
        for entry in self.entries:
            if entry.request is request:
                return entry.layout
        raise KeyError(request.name)


# -----------------------------
# 命名
# -----------------------------

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_NON_WORD_RUN = re.compile(r"[\W_]+")


def hyphenate(name: str, default: str = "item") -> str:
    """名称转连字符形式：Get All Users / getAllUsers -> get-all-users。"""
    s = _ACRONYM_BOUNDARY.sub(r"\1-\2", name or "")
    s = _CAMEL_BOUNDARY.sub(r"\1-\2", s)
    s = _NON_WORD_RUN.sub("-", s.lower()).strip("-")
    return s or default


def setup_import_path(import_depth: int, setup_name: str = "setup.js") -> str:
    """depth=0 -> ./setup.js；depth=n -> '../' * n + setup.js。"""
    if import_depth <= 0:
        return f"./{setup_name}"
    return "../" * import_depth + setup_name


# -----------------------------
# Planner
# -----------------------------

def plan(root: Union[Collection, Group], *, flatten: bool = False) -> LayoutPlan:
    group = root.as_group() if isinstance(root, Collection) else root
    result = LayoutPlan()
    _walk(group, [], None, result, flatten, seen={})
    return result


def _walk(
    group: Group,
    segments: list[str],
    parent_name: Optional[str],
    result: LayoutPlan,
    flatten: bool,
    seen: dict[str, str],
) -> None:
    for child in group.children:
        if isinstance(child, Group):
            if child.is_empty():
                logger.debug(f"skip empty folder: {child.name}")
                continue

            result.folders += 1
            child_segments = segments
            if not flatten:
                child_segments = [*segments, hyphenate(child.name, "folder")]
                directory = "/".join(child_segments)
                if directory not in result.directories:
                    result.directories.append(directory)

            _walk(child, child_segments, child.name, result, flatten, seen)
            continue

        file_name = hyphenate(child.name, "request") + TEST_EXTENSION
        output_path = "/".join([*segments, file_name])

        if output_path in seen:
            message = (
                f'Request "{child.name}" maps to {output_path}, '
                f'already used by "{seen[output_path]}"; the later file wins'
            )
            result.collisions.append(message)
            logger.warning(message)
        seen[output_path] = child.name

        result.entries.append(
            PlannedRequest(
                request=child,
                layout=LayoutEntry(output_path=output_path, import_depth=len(segments)),
                parent_name=parent_name,
            )
        )
