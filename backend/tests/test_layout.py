"""Tests for the layout planner"""

import pytest

from postmortem.models.collection import Collection, Group, Request
from postmortem.services.compile.layout import hyphenate, plan, setup_import_path


def _req(name, url="https://api.example.com/x"):
    return Request(name=name, url=url)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Get All", "get-all"),
        ("getAll", "get-all"),
        ("getAllUsers", "get-all-users"),
        ("HTMLParser", "html-parser"),
        ("Users & Roles!!", "users-roles"),
        ("  --Create__User--  ", "create-user"),
        ("v2 Endpoints", "v2-endpoints"),
    ],
)
def test_hyphenate(name, expected):
    assert hyphenate(name) == expected


def test_hyphenate_empty_uses_default():
    assert hyphenate("", "request") == "request"
    assert hyphenate("!!!") == "item"


def test_setup_import_path():
    assert setup_import_path(0) == "./setup.js"
    assert setup_import_path(1) == "../setup.js"
    assert setup_import_path(3) == "../../../setup.js"


class TestPlan:
    def _nested(self):
        target = _req("Get One")
        root = Collection(children=[Group(name="Api", children=[Group(name="User Accounts", children=[target])])])
        return root, target

    def test_depth_two_when_nested(self):
        root, target = self._nested()

        result = plan(root, flatten=False)
        entry = result.layout_for(target)

        assert entry.import_depth == 2
        assert entry.output_path == "api/user-accounts/get-one.test.js"
        assert result.directories == ["api", "api/user-accounts"]
        assert result.folders == 2

    def test_depth_zero_when_flattened(self):
        root, target = self._nested()

        result = plan(root, flatten=True)
        entry = result.layout_for(target)

        assert entry.import_depth == 0
        assert entry.output_path == "get-one.test.js"
        assert result.directories == []
        # flatten 时 Group 仍被遍历并计数
        assert result.folders == 2

    def test_root_request(self):
        target = _req("Health")
        result = plan(Collection(children=[target]))

        assert result.layout_for(target).import_depth == 0
        assert result.layout_for(target).output_path == "health.test.js"
        assert result.entries[0].parent_name is None

    def test_parent_name_is_immediate_group(self):
        target = _req("Login")
        result = plan(Collection(children=[Group(name="Auth", children=[target])]))
        assert result.entries[0].parent_name == "Auth"

    def test_empty_group_is_noop(self):
        root = Collection(children=[Group(name="Empty"), _req("A")])

        result = plan(root)

        assert result.folders == 0
        assert result.directories == []
        assert [e.layout.output_path for e in result.entries] == ["a.test.js"]

    def test_group_with_only_empty_subgroups_counts_once(self):
        root = Collection(children=[Group(name="Outer", children=[Group(name="Inner")])])

        result = plan(root)

        assert result.folders == 1
        assert result.directories == ["outer"]
        assert result.entries == []

    def test_preorder_insertion_order(self):
        root = Collection(children=[
            _req("First"),
            Group(name="G", children=[_req("Second"), Group(name="H", children=[_req("Third")])]),
            _req("Fourth"),
        ])

        result = plan(root)

        assert [e.request.name for e in result.entries] == ["First", "Second", "Third", "Fourth"]
        assert [e.layout.import_depth for e in result.entries] == [0, 1, 2, 0]

    def test_sibling_collision_is_recorded_not_raised(self):
        first, second = _req("Get"), _req("get")
        root = Collection(children=[Group(name="Users", children=[first, second])])

        result = plan(root)

        assert result.layout_for(first).output_path == result.layout_for(second).output_path
        assert len(result.entries) == 2
        assert len(result.collisions) == 1
        assert "users/get.test.js" in result.collisions[0]

    def test_layout_for_unknown_request(self):
        result = plan(Collection(children=[_req("A")]))
        with pytest.raises(KeyError):
            result.layout_for(_req("A"))
