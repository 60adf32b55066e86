# -*- coding: utf-8 -*-
"""Observability module for the portfolio assistant.

Provides LangSmith integration for tracing pipeline stages.
"""

from .langsmith_tracer import (
    create_custom_span,
    is_tracing_enabled,
)

__all__ = [
    'create_custom_span',
    'is_tracing_enabled',
]
