"""mrflap 的 YAML 配置加载。

约定：
    - YAML 顶层是一个 mapping，键对应 `MrFlapConfig` 的字段（player/bar/prediction/tapping/...）。
    - 子节点同样是 mapping，键对应子配置 dataclass 的字段。
    - 缺省字段取 dataclass 默认值；未知字段直接报 KeyError，避免拼写错误静默失效。

依赖：
    PyYAML（`pyyaml`）。
"""

from __future__ import annotations

from dataclasses import MISSING, Field, fields, is_dataclass
from pathlib import Path
from typing import Any, Mapping, TypeVar

import yaml

from mrflap.configs import MrFlapConfig

_T = TypeVar("_T")


def _as_mapping(node: Any) -> Mapping[str, Any]:
    if node is None:
        return {}
    if isinstance(node, Mapping):
        return node
    raise TypeError(f"配置节点必须是 mapping，实际是：{type(node).__name__}")


def _nested_config_type(f: Field[Any]) -> type | None:
    """字段若形如 `xxx: XxxConfig = field(default_factory=XxxConfig)`，返回 XxxConfig。"""

    factory = f.default_factory
    if factory is MISSING:  # type: ignore[comparison-overlap]
        return None
    if isinstance(factory, type) and is_dataclass(factory):
        return factory
    return None


def _build(cls: type[_T], data: Mapping[str, Any]) -> _T:
    names = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    unknown = sorted(set(data) - names)
    if unknown:
        raise KeyError(f"{cls.__name__} 出现未知字段：{unknown}")

    kwargs: dict[str, Any] = {}
    for f in fields(cls):  # type: ignore[arg-type]
        if f.name not in data:
            continue
        nested = _nested_config_type(f)
        if nested is not None:
            kwargs[f.name] = _build(nested, _as_mapping(data[f.name]))
        else:
            kwargs[f.name] = data[f.name]
    return cls(**kwargs)


def mrflap_config_from_dict(data: Mapping[str, Any]) -> MrFlapConfig:
    """从 dict（通常来自 YAML）构造 `MrFlapConfig`。"""

    return _build(MrFlapConfig, data)


def load_mrflap_config_yaml(path: str | Path) -> MrFlapConfig:
    """从 YAML 文件加载 `MrFlapConfig`；空文件得到全默认配置。"""

    payload = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    return mrflap_config_from_dict(_as_mapping(payload))
