"""
Postmortem - Compiler Driver

职责：
- 串起 校验 -> 提取 base URL / env -> 写 setup.js -> 规划布局 -> 逐个翻译并生成测试文件
- 唯一感知文件系统的组件

状态流转:
    IDLE -> VALIDATING -> (FAILED | EXTRACTING -> EMITTING -> WALKING -> DONE)

说明:
- 校验错误批量收集后一次性抛出（StructuralError / InvalidEnvironmentError），此时不写任何文件
- warnings 只记录、不阻断，最终汇总在 CompileResult.warnings
- 写文件失败立即中止（EmissionError），已写出的文件保留在磁盘上
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from postmortem.errors import (
    CollectionReadError,
    EmissionError,
    InvalidEnvironmentError,
    StructuralError,
)
from postmortem.models.compile_schemas import CompileOptions, CompileResult
from postmortem.services.collection.parser import parse_collection
from postmortem.services.compile.emitter import SETUP_FILE_NAME, emit_setup, emit_test
from postmortem.services.compile.extract import extract_base_url, extract_environment
from postmortem.services.compile.layout import plan
from postmortem.services.compile.translator import translate
from postmortem.services.storage.filesystem import FileSystem, LocalFileSystem
from postmortem.services.validation.validator import validate_collection, validate_environment

logger = logging.getLogger(__name__)


class CompilerState(str, Enum):
    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    FAILED = "FAILED"
    EXTRACTING = "EXTRACTING"
    EMITTING = "EMITTING"
    WALKING = "WALKING"
    DONE = "DONE"


class CollectionCompiler:
    """单次编译运行；状态只在本对象内，运行之间不共享。"""

    def __init__(self, fs: Optional[FileSystem] = None, options: Optional[CompileOptions] = None):
        self.fs = fs or LocalFileSystem()
        self.options = options or CompileOptions()
        self.state = CompilerState.IDLE

    def _enter(self, state: CompilerState) -> None:
        logger.debug(f"compiler state: {self.state.value} -> {state.value}")
        self.state = state

    def run(
        self,
        raw_collection: Any,
        output_dir: Union[str, Path],
        raw_environment: Optional[dict[str, Any]] = None,
    ) -> CompileResult:
        output_root = Path(output_dir)
        warnings: list[str] = []

        # ---------- VALIDATING ----------
        self._enter(CompilerState.VALIDATING)
        report = validate_collection(raw_collection)
        if not report.ok:
            self._enter(CompilerState.FAILED)
            raise StructuralError(errors=report.errors, warnings=report.warnings)
        warnings.extend(report.warnings)

        env_report = validate_environment(raw_environment)
        if not env_report.ok:
            self._enter(CompilerState.FAILED)
            raise InvalidEnvironmentError(errors=env_report.errors, warnings=env_report.warnings)
        warnings.extend(env_report.warnings)

        collection, parse_warnings = parse_collection(raw_collection)
        warnings.extend(parse_warnings)
        for w in warnings:
            logger.warning(w)
        logger.info(f'Processing collection: "{collection.name}"')

        # ---------- EXTRACTING ----------
        self._enter(CompilerState.EXTRACTING)
        base_url, url_warnings = extract_base_url(collection)
        warnings.extend(url_warnings)
        environment = extract_environment(raw_environment, collection.variables)
        if environment is not None:
            logger.info(f"Found environment with {len(environment)} variables")

        # ---------- EMITTING ----------
        self._enter(CompilerState.EMITTING)
        written: list[str] = []
        self._ensure_dir(output_root)
        if self.options.emit_setup:
            setup_path = output_root / SETUP_FILE_NAME
            self._write(setup_path, emit_setup(base_url, environment, enhanced=self.options.enhanced))
            written.append(setup_path.as_posix())
            logger.info(f"Created setup file: {setup_path}")

        # ---------- WALKING ----------
        self._enter(CompilerState.WALKING)
        layout = plan(collection, flatten=self.options.flatten)
        warnings.extend(layout.collisions)

        for directory in layout.directories:
            self._ensure_dir(output_root / directory)

        fallbacks = 0
        for entry in layout.entries:
            translated = translate(entry.request.script)
            if translated.used_fallback:
                fallbacks += 1
            content = emit_test(
                entry.request,
                entry.layout,
                translated,
                parent_name=entry.parent_name,
                enhanced=self.options.enhanced,
            )
            file_path = output_root / entry.layout.output_path
            self._write(file_path, content, request_name=entry.request.name)
            written.append(file_path.as_posix())
            logger.info(f"Created test file: {file_path}")

        self._enter(CompilerState.DONE)
        logger.info(f"Successfully generated {len(layout.entries)} test files in {output_root}")
        return CompileResult(
            files=len(layout.entries),
            folders=layout.folders,
            base_url=base_url,
            environment=environment,
            warnings=warnings,
            fallbacks=fallbacks,
            written=written,
        )

    def _ensure_dir(self, path: Path) -> None:
        try:
            self.fs.ensure_dir(path)
        except OSError as e:
            self._enter(CompilerState.FAILED)
            raise EmissionError(path=path.as_posix(), cause=e) from e

    def _write(self, path: Path, content: str, request_name: Optional[str] = None) -> None:
        try:
            self.fs.write_text(path, content)
        except OSError as e:
            self._enter(CompilerState.FAILED)
            logger.error(f"Failed to generate {path} for {request_name or 'setup module'}: {e}")
            raise EmissionError(path=path.as_posix(), request_name=request_name, cause=e) from e


def compile_collection(
    raw_collection: Any,
    output_dir: Union[str, Path],
    raw_environment: Optional[dict[str, Any]] = None,
    options: Optional[CompileOptions] = None,
    fs: Optional[FileSystem] = None,
) -> CompileResult:
    """编译入口：原始 collection 文档 + 输出根目录 + 可选 environment 文档。"""
    return CollectionCompiler(fs=fs, options=options).run(raw_collection, output_dir, raw_environment)


def read_json(path: Union[str, Path], fs: Optional[FileSystem] = None) -> Any:
    fs = fs or LocalFileSystem()
    try:
        text = fs.read_text(path)
    except OSError as e:
        raise CollectionReadError(path=str(path), reason=e.strerror or str(e)) from e
    try:
        return json.loads(text)
    except ValueError as e:
        raise CollectionReadError(path=str(path), reason=f"invalid JSON - {e}") from e


def convert(
    collection_path: Union[str, Path],
    output_dir: Union[str, Path],
    environment_path: Optional[Union[str, Path]] = None,
    options: Optional[CompileOptions] = None,
    fs: Optional[FileSystem] = None,
) -> CompileResult:
    """一次性转换：从磁盘读 collection / environment 后编译。"""
    fs = fs or LocalFileSystem()
    collection = read_json(collection_path, fs)
    environment = read_json(environment_path, fs) if environment_path else None
    return compile_collection(collection, output_dir, environment, options=options, fs=fs)
