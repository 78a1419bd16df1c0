"""Postmortem - Compile Config Loader

从 YAML 文件加载默认编译选项（flatten / emit_setup / enhanced）。

优先级:
1. 显式传入的 path
2. 环境变量 PM_CONFIG_PATH
3. 当前目录下的 postmortem.yaml
4. 内置默认值

CLI 参数在此基础上覆盖。
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from postmortem.models.compile_schemas import CompileOptions

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("postmortem.yaml")

ENV_CONFIG_PATH = "PM_CONFIG_PATH"


def load_compile_config(path: Optional[Path] = None) -> CompileOptions:
    """加载编译选项；文件缺失或内容非法时回退到默认值。"""
    if path is None:
        env_path = os.environ.get(ENV_CONFIG_PATH)
        path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.debug(f"Compile config not found at {path}, using defaults")
        return CompileOptions()

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        options = CompileOptions.model_validate((data or {}).get("options", data or {}))
        logger.info(f"Compile config loaded from {path}")
        return options
    except (OSError, yaml.YAMLError, ValidationError, AttributeError) as e:
        logger.warning(f"Failed to load compile config from {path}: {e}, using defaults")
        return CompileOptions()
