"""Tests for the compiler driver (validate -> extract -> setup -> walk)"""

import errno
import json

import pytest

from postmortem.errors import (
    CollectionReadError,
    EmissionError,
    InvalidEnvironmentError,
    StructuralError,
)
from postmortem.models.compile_schemas import CompileOptions
from postmortem.services.compile.driver import (
    CollectionCompiler,
    CompilerState,
    compile_collection,
    convert,
)
from postmortem.services.storage.filesystem import InMemoryFileSystem

from builders import make_collection, make_folder, make_request


class FailingFileSystem(InMemoryFileSystem):
    """写到指定文件名时抛 EACCES。"""

    def __init__(self, fail_on):
        super().__init__()
        self.fail_on = fail_on

    def write_text(self, path, text):
        if self._key(path).endswith(self.fail_on):
            raise PermissionError(errno.EACCES, "Permission denied", str(path))
        super().write_text(path, text)


# -----------------------------
# 端到端
# -----------------------------

def test_end_to_end_users_collection(tmp_path, users_collection):
    result = compile_collection(users_collection, tmp_path)

    setup = (tmp_path / "setup.js").read_text(encoding="utf-8")
    assert "'https://api.example.com'" in setup
    assert "const env = null;" in setup

    test_files = sorted(p.relative_to(tmp_path).as_posix() for p in tmp_path.rglob("*.test.js"))
    assert test_files == ["users/get-all.test.js"]

    content = (tmp_path / "users" / "get-all.test.js").read_text(encoding="utf-8")
    assert content.startswith("const { request, expect } = require('../setup.js');")
    assert "describe('Users - Get All', function () {" in content
    assert "response = await request.get('/users');" in content
    assert 'it("is 200", function(){ expect(response.status).to.equal(200); });' in content

    assert result.files == 1
    assert result.folders == 1
    assert result.base_url == "https://api.example.com"
    assert result.fallbacks == 0
    assert result.environment is None


def test_environment_is_written_to_setup(users_collection, environment):
    fs = InMemoryFileSystem()

    result = compile_collection(users_collection, "out", environment, fs=fs)

    assert result.environment == {"token": "abc123", "userId": "42"}
    assert "'token': 'abc123'," in fs.files["out/setup.js"]


def test_state_reaches_done(users_collection):
    compiler = CollectionCompiler(fs=InMemoryFileSystem())
    assert compiler.state is CompilerState.IDLE

    compiler.run(users_collection, "out")

    assert compiler.state is CompilerState.DONE


# -----------------------------
# 校验失败
# -----------------------------

def test_structural_error_writes_nothing():
    fs = InMemoryFileSystem()
    compiler = CollectionCompiler(fs=fs)

    with pytest.raises(StructuralError) as exc:
        compiler.run({"item": "nope"}, "out")

    assert "Collection must have an info object" in exc.value.errors
    assert "Collection must have an items array" in exc.value.errors
    assert str(exc.value).startswith("Invalid collection: ")
    assert compiler.state is CompilerState.FAILED
    assert fs.files == {}
    assert fs.directories == []


def test_invalid_environment_writes_nothing(users_collection):
    fs = InMemoryFileSystem()

    with pytest.raises(InvalidEnvironmentError) as exc:
        compile_collection(users_collection, "out", {}, fs=fs)

    assert exc.value.errors == ["Environment must have a values array"]
    assert fs.files == {}


def test_warnings_are_surfaced():
    raw = make_collection(make_request("A", url="{{baseUrl}}/a"), name=None)

    result = compile_collection(raw, "out", fs=InMemoryFileSystem())

    assert "Collection name is missing" in result.warnings
    assert any("base URL" in w for w in result.warnings)
    assert result.base_url == "https://api.example.com"


# -----------------------------
# 布局选项
# -----------------------------

def test_name_collision_is_not_fatal():
    raw = make_collection(
        make_request("Get User", url="https://api.example.com/users/1"),
        make_request("get-user", url="https://api.example.com/users/2"),
    )
    fs = InMemoryFileSystem()

    result = compile_collection(raw, "out", fs=fs)

    assert result.files == 2
    assert sorted(fs.files) == ["out/get-user.test.js", "out/setup.js"]
    assert "'/users/2'" in fs.files["out/get-user.test.js"]
    assert any("get-user.test.js" in w for w in result.warnings)


def test_flatten(users_collection):
    fs = InMemoryFileSystem()

    result = compile_collection(users_collection, "out", options=CompileOptions(flatten=True), fs=fs)

    assert sorted(fs.files) == ["out/get-all.test.js", "out/setup.js"]
    assert fs.files["out/get-all.test.js"].startswith("const { request, expect } = require('./setup.js');")
    assert result.folders == 1


def test_no_setup(users_collection):
    fs = InMemoryFileSystem()

    compile_collection(users_collection, "out", options=CompileOptions(emit_setup=False), fs=fs)

    assert list(fs.files) == ["out/users/get-all.test.js"]


def test_fallback_counted():
    raw = make_collection(
        make_request("Logs", script="console.log('x');"),
        make_request("No script"),
    )
    fs = InMemoryFileSystem()

    result = compile_collection(raw, "out", fs=fs)

    assert result.fallbacks == 2
    assert "expect(response.status).to.be.oneOf([200, 201, 204]);" in fs.files["out/no-script.test.js"]


# -----------------------------
# 写入失败
# -----------------------------

def test_emission_error_keeps_partial_output():
    raw = make_collection(
        make_request("First"),
        make_request("Second"),
        make_request("Third"),
    )
    fs = FailingFileSystem(fail_on="second.test.js")
    compiler = CollectionCompiler(fs=fs)

    with pytest.raises(EmissionError) as exc:
        compiler.run(raw, "out")

    assert exc.value.path == "out/second.test.js"
    assert exc.value.request_name == "Second"
    assert isinstance(exc.value.cause, PermissionError)
    assert compiler.state is CompilerState.FAILED
    assert sorted(fs.files) == ["out/first.test.js", "out/setup.js"]


def test_emission_error_on_setup(users_collection):
    with pytest.raises(EmissionError) as exc:
        compile_collection(users_collection, "out", fs=FailingFileSystem(fail_on="setup.js"))

    assert exc.value.request_name is None
    assert str(exc.value).startswith("Failed to write out/setup.js: ")


# -----------------------------
# convert()：从磁盘读取
# -----------------------------

def test_convert_reads_files(tmp_path, users_collection, environment):
    collection_path = tmp_path / "collection.json"
    environment_path = tmp_path / "env.json"
    collection_path.write_text(json.dumps(users_collection), encoding="utf-8")
    environment_path.write_text(json.dumps(environment), encoding="utf-8")

    result = convert(collection_path, tmp_path / "test", environment_path)

    assert result.files == 1
    assert (tmp_path / "test" / "setup.js").exists()
    assert (tmp_path / "test" / "users" / "get-all.test.js").exists()


def test_convert_missing_file(tmp_path):
    with pytest.raises(CollectionReadError) as exc:
        convert(tmp_path / "missing.json", tmp_path / "test")

    assert "missing.json" in str(exc.value)
    assert not (tmp_path / "test").exists()


def test_convert_invalid_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(CollectionReadError) as exc:
        convert(path, tmp_path / "test")

    assert "invalid JSON" in exc.value.reason


# -----------------------------
# 节点内部格式错误
# -----------------------------

def test_malformed_nodes_do_not_abort_compilation():
    raw = make_collection(
        {"name": "List request", "request": ["GET", "x"]},
        make_request("Dict body", method="POST", body={"mode": "raw", "raw": {"a": 1}}),
        {
            "name": "String script",
            "request": "https://api.example.com/s",
            "event": [{"listen": "test", "script": "pm.response.to.have.status(200);"}],
        },
    )
    fs = InMemoryFileSystem()

    result = compile_collection(raw, "out", fs=fs)

    assert result.files == 2
    assert sorted(fs.files) == ["out/dict-body.test.js", "out/setup.js", "out/string-script.test.js"]
    for name in ("List request", "Dict body", "String script"):
        assert any(f'"{name}"' in w for w in result.warnings)
