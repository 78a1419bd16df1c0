"""postmortem - 把 Postman collection 编译为 Mocha/Chai + Supertest 测试文件"""

__version__ = "0.1.0"
