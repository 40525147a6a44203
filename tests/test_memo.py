"""
메모이즈된 파생 그래프 테스트
"""
from __future__ import annotations

import pandas as pd
import pytest

from retail_dashboard.common.memo import DerivationGraph, fingerprint
from retail_dashboard.domain.models import FilterState, Selection


def test_fingerprint_content_based():
    """지문 - 같은 내용이면 같은 지문, 다르면 다른 지문"""
    a = pd.DataFrame({"x": [1, 2]})
    b = pd.DataFrame({"x": [1, 2]})
    c = pd.DataFrame({"x": [1, 3]})

    assert fingerprint(a) == fingerprint(b)
    assert fingerprint(a) != fingerprint(c)
    assert fingerprint({"sales": a}) == fingerprint({"sales": b})
    assert fingerprint(FilterState(locations=Selection.of(["1"]))) == fingerprint(
        FilterState(locations=Selection.of([1]))
    )


def test_graph_recomputes_only_on_change():
    """그래프 - 입력 내용이 바뀐 경우에만 재계산"""
    graph = DerivationGraph()
    graph.node("total", lambda frame: float(frame["x"].sum()), deps=["frame"])
    graph.node("double", lambda total: total * 2, deps=["total"])

    graph.set_sources(frame=pd.DataFrame({"x": [1, 2]}))
    assert graph.get("double") == 6.0

    graph.set_sources(frame=pd.DataFrame({"x": [1, 2]}))
    assert graph.get("double") == 6.0
    assert graph.computations("total") == 1
    assert graph.computations("double") == 1

    graph.set_sources(frame=pd.DataFrame({"x": [5]}))
    assert graph.get("double") == 10.0
    assert graph.computations("total") == 2


def test_graph_keys_on_dependency_versions():
    """그래프 - 하위 노드는 상위 노드의 값이 아니라 버전으로 키를 만듦"""
    graph = DerivationGraph()
    graph.node("length", lambda xs: len(xs), deps=["xs"])
    graph.node("label", lambda n: f"{n} items", deps=["length"])

    graph.set_sources(xs=[1, 2, 3])
    assert graph.get("label") == "3 items"
    graph.set_sources(xs=[4, 5, 6])
    assert graph.get("label") == "3 items"

    assert graph.computations("length") == 2
    assert graph.computations("label") == 2


def test_graph_errors():
    """그래프 - 중복 노드, 자기 의존, 알 수 없는 노드"""
    graph = DerivationGraph()
    graph.node("a", lambda: 1)

    with pytest.raises(ValueError):
        graph.node("a", lambda: 2)
    with pytest.raises(ValueError):
        graph.node("b", lambda b: b, deps=["b"])
    with pytest.raises(ValueError):
        graph.set_sources(a=1)
    with pytest.raises(KeyError):
        graph.get("missing")
