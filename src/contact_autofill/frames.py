"""Enumerate document contexts and search them for candidate elements."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import AsyncIterator, Deque, List, Sequence, Set, Tuple

from .config import MAX_FRAME_DEPTH
from .dom import DocumentContext, DomElement

logger = logging.getLogger(__name__)


@dataclass
class Candidate:
    context: DocumentContext
    selector: str
    elements: List[DomElement]


async def for_each_context(root: DocumentContext, max_depth: int = MAX_FRAME_DEPTH) -> List[DocumentContext]:
    """Breadth-first list of contexts: the root first, then nested frames in document order."""
    ordered: List[DocumentContext] = []
    queue: Deque[Tuple[DocumentContext, int]] = deque([(root, 0)])
    seen: Set[int] = set()

    while queue:
        context, depth = queue.popleft()
        if id(context) in seen:
            continue
        seen.add(id(context))
        ordered.append(context)
        if depth >= max_depth:
            continue
        try:
            children = await context.children()
        except Exception as exc:  # noqa: BLE001 - detached frames are kept but not expanded
            logger.debug("Could not list child frames of %s: %s", context.name, exc)
            continue
        for child in children:
            queue.append((child, depth + 1))

    logger.debug("Frame search order: %s", [context.name for context in ordered])
    return ordered


async def iter_candidates(
    contexts: Sequence[DocumentContext],
    selectors: Sequence[str],
) -> AsyncIterator[Candidate]:
    """Yield every context/selector pair that matches at least one element."""
    for context in contexts:
        for selector in selectors:
            try:
                elements = await context.query_all(selector)
            except Exception as exc:  # noqa: BLE001 - a broken query is a selector miss
                logger.debug("Selector %s failed in %s: %s", selector, context.name, exc)
                continue
            if not elements:
                continue
            yield Candidate(context=context, selector=selector, elements=elements)
