"""
Postmortem - 文件系统协作者

编译器只依赖三个原语：read_text / ensure_dir / write_text。
- LocalFileSystem    : 真实磁盘（utf-8）
- InMemoryFileSystem : 内存实现，HTTP API 与测试使用
- RetryingFileSystem : 装饰器，只对瞬时错误（EAGAIN/EBUSY/EMFILE/ENFILE/EINTR）做有界指数退避重试

重试对编译器完全透明：driver 把任何抛出的异常都视为本次运行失败。
"""

from __future__ import annotations

import errno
import logging
import time
from pathlib import Path, PurePosixPath
from typing import Callable, Protocol, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

RETRYABLE_ERRNOS = frozenset({errno.EAGAIN, errno.EBUSY, errno.EMFILE, errno.ENFILE, errno.EINTR})


class FileSystem(Protocol):
    def read_text(self, path: PathLike) -> str: ...

    def ensure_dir(self, path: PathLike) -> None: ...

    def write_text(self, path: PathLike, text: str) -> None: ...


class LocalFileSystem:
    def read_text(self, path: PathLike) -> str:
        return Path(path).read_text(encoding="utf-8")

    def ensure_dir(self, path: PathLike) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def write_text(self, path: PathLike, text: str) -> None:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(text, encoding="utf-8")


class InMemoryFileSystem:
    """路径统一成 POSIX 字符串保存；files 保留写入顺序（覆盖写不改变位置）。"""

    def __init__(self, files: dict[str, str] | None = None):
        self.files: dict[str, str] = dict(files or {})
        self.directories: list[str] = []

    @staticmethod
    def _key(path: PathLike) -> str:
        return str(PurePosixPath(Path(path).as_posix()))

    def read_text(self, path: PathLike) -> str:
        key = self._key(path)
        if key not in self.files:
            raise FileNotFoundError(errno.ENOENT, "No such file", key)
        return self.files[key]

    def ensure_dir(self, path: PathLike) -> None:
        key = self._key(path)
        if key not in self.directories:
            self.directories.append(key)

    def write_text(self, path: PathLike, text: str) -> None:
        self.files[self._key(path)] = text


class RetryingFileSystem:
    def __init__(
        self,
        inner: FileSystem,
        *,
        max_retries: int = 3,
        base_delay_s: float = 0.05,
        max_delay_s: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.inner = inner
        self.max_retries = max_retries
        self.base_delay_s = base_delay_s
        self.max_delay_s = max_delay_s
        self._sleep = sleep

    @staticmethod
    def is_retryable(error: BaseException) -> bool:
        return isinstance(error, OSError) and error.errno in RETRYABLE_ERRNOS

    def _call(self, op: str, func: Callable, *args):
        attempt = 0
        while True:
            try:
                return func(*args)
            except OSError as e:
                if not self.is_retryable(e) or attempt >= self.max_retries:
                    raise
                delay = min(self.base_delay_s * (2 ** attempt), self.max_delay_s)
                attempt += 1
                logger.warning(
                    f"{op} {args[0]} failed ({e.strerror or e}), "
                    f"retrying in {delay:.2f}s ({attempt}/{self.max_retries})"
                )
                self._sleep(delay)

    def read_text(self, path: PathLike) -> str:
        return self._call("read", self.inner.read_text, path)

    def ensure_dir(self, path: PathLike) -> None:
        self._call("mkdir", self.inner.ensure_dir, path)

    def write_text(self, path: PathLike, text: str) -> None:
        self._call("write", self.inner.write_text, path, text)
