# -*- coding: utf-8 -*-
"""LangSmith span helpers.

Pipeline stages wrap their work in ``create_custom_span`` so each chat turn
shows up as a tree of runs in LangSmith. Tracing is switched on with the
standard ``LANGCHAIN_TRACING_V2=true`` (or ``LANGSMITH_TRACING=true``)
environment variable; when it is off the span is a no-op.

Usage:
    from portfolio_agent.observability.langsmith_tracer import create_custom_span

    with create_custom_span("resolve_entities", {"query": query[:120]}):
        ...
"""

import logging
import os
from contextlib import contextmanager, nullcontext
from typing import Any, Dict, Iterator, Optional

from langsmith import trace

logger = logging.getLogger(__name__)


def is_tracing_enabled() -> bool:
    """True when LangSmith tracing is switched on in the environment."""
    for var in ("LANGCHAIN_TRACING_V2", "LANGSMITH_TRACING"):
        if os.getenv(var, "false").lower() in ("true", "1", "yes", "on"):
            return True
    return False


@contextmanager
def create_custom_span(
    name: str,
    inputs: Optional[Dict[str, Any]] = None,
    run_type: str = "chain",
) -> Iterator[Any]:
    """Open a LangSmith span around a block of pipeline work.

    Args:
        name: Span name shown in LangSmith (usually the node name)
        inputs: Small dict of inputs to attach (truncate long strings first)
        run_type: LangSmith run type ("chain", "llm", "retriever", "tool")

    Yields:
        The LangSmith run tree, or None when tracing is disabled
    """
    if not is_tracing_enabled():
        with nullcontext() as run:
            yield run
        return

    with trace(name=name, run_type=run_type, inputs=inputs or {}) as run:
        yield run
