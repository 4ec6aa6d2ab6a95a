"""YAML 配置文件的读写。"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from ollama_cli.domain.exceptions import ValidationError


def read_config_file(path: Path) -> Dict[str, Any]:
    """读取配置文件；文件不存在时返回空字典。"""

    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ValidationError(code="CONFIG_READ_ERROR", message=f"Failed to read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        warnings.warn(f"Config file {path} is not a mapping, ignored")
        return {}
    return data


def write_config_file(path: Path, data: Mapping[str, Any]) -> None:
    """把配置写回 YAML 文件（保持键顺序）。"""

    path.parent.mkdir(parents=True, exist_ok=True)
    values = {key: value for key, value in data.items() if key}
    path.write_text(yaml.safe_dump(values, sort_keys=False, allow_unicode=True), encoding="utf-8")
