"""Collection 树模型

输入文档（Postman v2.x collection）在解析阶段被一次性归一化为显式的
tagged variant：`Group | Request`。下游组件（校验之后的 layout / emitter）
只针对这两个封闭的变体做匹配，不再按字段是否存在来猜测节点类型。
"""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


# 环境变量映射：key -> value（重复 key 以最后一次为准）
EnvironmentMap = dict[str, str]


class Header(BaseModel):
    key: str
    value: str = ""
    disabled: bool = False


class RawBody(BaseModel):
    """请求体。仅 mode == "raw" 会被编译器解释，其余 mode 原样保留。"""

    mode: str = ""
    raw: Optional[str] = None


class Request(BaseModel):
    kind: Literal["request"] = "request"
    name: str
    method: str = "GET"
    url: str = ""
    body: Optional[RawBody] = None
    headers: list[Header] = Field(default_factory=list)
    script: Optional[str] = Field(default=None, description="test 事件脚本原文（exec 按换行拼接）")


class Group(BaseModel):
    kind: Literal["group"] = "group"
    name: str
    children: list[CollectionNode] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.children

    def iter_requests(self):
        """前序遍历，按插入顺序产出所有 Request。"""
        for child in self.children:
            if isinstance(child, Group):
                yield from child.iter_requests()
            else:
                yield child


CollectionNode = Annotated[Union[Group, Request], Field(discriminator="kind")]

Group.model_rebuild()


class Collection(BaseModel):
    """根节点：info 元数据 + 顶层 children。"""

    name: str = "Unnamed Collection"
    schema_url: Optional[str] = None
    children: list[CollectionNode] = Field(default_factory=list)
    variables: EnvironmentMap = Field(default_factory=dict)

    def as_group(self) -> Group:
        # 根本身不贡献路径段，也不计入 folders
        return Group(name=self.name, children=list(self.children))

    def iter_requests(self):
        return self.as_group().iter_requests()
