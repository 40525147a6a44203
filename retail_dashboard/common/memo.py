"""
메모이즈된 파생 그래프

대시보드의 각 파생 값(필터 결과, 집계, 스코어카드 등)을 명시적인
의존성 그래프의 노드로 선언하고, 입력이 실제로 바뀐 경우에만 다시
계산합니다. 소스 입력은 내용 지문(fingerprint)으로, 파생 노드는
상위 노드의 버전으로 키를 만듭니다. 각 노드는 이전 결과를 변경하지
않고 통째로 교체합니다.
"""

from __future__ import annotations

import dataclasses
import hashlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Hashable, Mapping, Optional, Sequence

import pandas as pd

logger = logging.getLogger(__name__)


def _frame_digest(obj: pd.DataFrame | pd.Series) -> str:
    hashed = pd.util.hash_pandas_object(obj, index=True)
    return hashlib.sha1(hashed.values.tobytes()).hexdigest()


def fingerprint(value: Any) -> Hashable:
    """
    값의 내용 기반 지문을 계산합니다.

    - DataFrame/Series: 컬럼 + 행 해시(sha1)
    - dataclass: 필드별 지문의 튜플
    - Mapping/시퀀스/집합: 원소 지문의 튜플
    - 그 외: 해시 가능하면 값 자체, 아니면 repr

    같은 내용이면 같은 지문을 갖습니다.
    """
    if isinstance(value, pd.DataFrame):
        return ("frame", tuple(map(str, value.columns)), value.shape, _frame_digest(value))
    if isinstance(value, pd.Series):
        return ("series", str(value.name), len(value), _frame_digest(value))
    if isinstance(value, Enum):
        return (type(value).__name__, value.value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return (
            type(value).__name__,
            tuple(
                (f.name, fingerprint(getattr(value, f.name)))
                for f in dataclasses.fields(value)
            ),
        )
    if isinstance(value, Mapping):
        return ("map", tuple(sorted(((str(k), fingerprint(v)) for k, v in value.items()))))
    if isinstance(value, (frozenset, set)):
        return ("set", tuple(sorted(map(repr, value))))
    if isinstance(value, (list, tuple)):
        return ("seq", tuple(fingerprint(v) for v in value))
    try:
        hash(value)
    except TypeError:
        return ("repr", repr(value))
    return value


@dataclass
class _Node:
    name: str
    func: Callable[..., Any]
    deps: tuple
    key: Optional[tuple] = None
    value: Any = None
    version: int = 0
    computations: int = 0


@dataclass
class _Source:
    digest: Hashable
    value: Any
    version: int = 1


@dataclass
class DerivationGraph:
    """
    순수 함수 노드로 구성된 의존성 그래프.

    Examples:
        >>> graph = DerivationGraph()
        >>> graph.node("total", lambda xs: sum(xs), deps=["values"])
        >>> graph.set_sources(values=[1, 2, 3])
        >>> graph.get("total")
        6
        >>> graph.set_sources(values=[1, 2, 3])  # 같은 내용 → 재계산 없음
        >>> graph.get("total")
        6
        >>> graph.computations("total")
        1
    """

    _nodes: dict = field(default_factory=dict)
    _sources: dict = field(default_factory=dict)

    def node(self, name: str, func: Callable[..., Any], deps: Sequence[str] = ()) -> None:
        """
        파생 노드를 등록합니다.

        의존성은 이미 등록된 노드 또는 소스 이름이어야 하며, 등록 순서가
        곧 위상 순서가 되므로 순환이 생기지 않습니다.

        Raises:
            ValueError: 같은 이름의 노드가 이미 있거나, 자기 자신에 의존하는 경우
        """
        if name in self._nodes:
            raise ValueError(f"node already registered: {name}")
        if name in deps:
            raise ValueError(f"node cannot depend on itself: {name}")
        self._nodes[name] = _Node(name=name, func=func, deps=tuple(deps))

    def set_sources(self, **values: Any) -> None:
        """소스 입력을 설정합니다. 내용이 같으면 버전을 유지합니다."""
        for name, value in values.items():
            if name in self._nodes:
                raise ValueError(f"{name} is a derived node, not a source")
            digest = fingerprint(value)
            current = self._sources.get(name)
            if current is not None and current.digest == digest:
                continue
            version = current.version + 1 if current is not None else 1
            self._sources[name] = _Source(digest=digest, value=value, version=version)
            logger.debug(f"Source changed: {name} (v{version})")

    def _version(self, name: str) -> int:
        if name in self._sources:
            return self._sources[name].version
        return self._nodes[name].version

    def get(self, name: str) -> Any:
        """노드(또는 소스)의 현재 값을 반환합니다. 필요할 때만 재계산합니다."""
        if name in self._sources:
            return self._sources[name].value
        if name not in self._nodes:
            raise KeyError(f"unknown node or source: {name}")

        node = self._nodes[name]
        dep_values = [self.get(dep) for dep in node.deps]
        key = tuple(self._version(dep) for dep in node.deps)
        if node.version and node.key == key:
            return node.value

        node.value = node.func(*dep_values)
        node.key = key
        node.version += 1
        node.computations += 1
        logger.debug(f"Recomputed node: {name} (#{node.computations})")
        return node.value

    def computations(self, name: str) -> int:
        """노드가 실제로 계산된 횟수 (캐시 적중 제외)."""
        return self._nodes[name].computations
