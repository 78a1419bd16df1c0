"""
postmortem 测试配置

共享 fixture：最小 Users collection、带变量的 environment。
"""
import pytest

from builders import make_collection, make_folder, make_request


@pytest.fixture
def users_collection():
    """文件夹 Users 下一个 GET 请求 Get All，带一段 status 断言脚本。"""
    return make_collection(
        make_folder(
            "Users",
            make_request(
                "Get All",
                url="https://api.example.com/users",
                script='pm.test("is 200", function(){ pm.expect(pm.response.code).to.equal(200); });',
            ),
        )
    )


@pytest.fixture
def environment():
    return {
        "name": "Local",
        "values": [
            {"key": "token", "value": "abc123", "enabled": True},
            {"key": "userId", "value": "42", "enabled": True},
        ],
    }
