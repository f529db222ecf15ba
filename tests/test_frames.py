from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from contact_autofill.frames import for_each_context, iter_candidates  # noqa: E402
from fakes import FakeContext, text_input  # noqa: E402


def _tree() -> FakeContext:
    a1 = FakeContext("main>a>a1")
    b1 = FakeContext("main>b>b1")
    a = FakeContext("main>a", children=[a1])
    b = FakeContext("main>b", children=[b1])
    return FakeContext("main", children=[a, b])


@pytest.mark.asyncio
async def test_contexts_are_listed_breadth_first() -> None:
    contexts = await for_each_context(_tree())
    assert [context.name for context in contexts] == ["main", "main>a", "main>b", "main>a>a1", "main>b>b1"]


@pytest.mark.asyncio
async def test_depth_bound_stops_expansion() -> None:
    contexts = await for_each_context(_tree(), max_depth=1)
    assert [context.name for context in contexts] == ["main", "main>a", "main>b"]


@pytest.mark.asyncio
async def test_context_whose_children_fail_is_kept() -> None:
    broken = FakeContext("main>detached", children_error=RuntimeError("frame detached"))
    root = FakeContext("main", children=[broken])

    contexts = await for_each_context(root)

    assert [context.name for context in contexts] == ["main", "main>detached"]


@pytest.mark.asyncio
async def test_repeated_context_is_visited_once() -> None:
    shared = FakeContext("main>shared")
    root = FakeContext("main", children=[shared, shared])

    contexts = await for_each_context(root)

    assert [context.name for context in contexts] == ["main", "main>shared"]


@pytest.mark.asyncio
async def test_candidates_are_context_major_selector_minor() -> None:
    main = FakeContext("main", elements=[text_input(name="b")])
    child = FakeContext("main>f", elements=[text_input(name="a"), text_input(name="b")])

    found = [
        (candidate.context.name, candidate.selector, len(candidate.elements))
        async for candidate in iter_candidates([main, child], ['input[name="a"]', 'input[name="b"]'])
    ]

    assert found == [
        ("main", 'input[name="b"]', 1),
        ("main>f", 'input[name="a"]', 1),
        ("main>f", 'input[name="b"]', 1),
    ]


@pytest.mark.asyncio
async def test_query_errors_are_treated_as_misses() -> None:
    class ExplodingContext(FakeContext):
        async def query_all(self, selector):
            raise RuntimeError("execution context was destroyed")

    good = FakeContext("main>ok", elements=[text_input(name="a")])
    found = [c.context.name async for c in iter_candidates([ExplodingContext("main"), good], ['input[name="a"]'])]
    assert found == ["main>ok"]
