"""Node logic package - chat pipeline node implementations.

Modules are stage-prefixed in pipeline order:
- stage0_preprocessing: validation, forbidden keywords, typo normalization
- stage1_language: language detection and pivot translation
- stage2_classifiers: pure regex predicates over the pivot message
- stage2_short_circuit: ordered canned-reply rules (first match wins)
- stage3_intent: product / project / developer intent
- stage4_entity_resolution: three-tier fuzzy lookup, direct entity replies
- stage5_context: company info, featured samples, summaries, links
- stage5_prompt: system prompt with live records, history filtering
- stage6_generation: LLM call
- stage7_finalize: extras appended, translation back to the user language
"""

from __future__ import annotations

# Re-export node functions for clean imports
from portfolio_agent.flows.node_logic.stage0_preprocessing import preprocess_message, preprocess_text
from portfolio_agent.flows.node_logic.stage1_language import detect_and_translate
from portfolio_agent.flows.node_logic.stage2_short_circuit import SHORT_CIRCUIT_RULES, apply_short_circuit
from portfolio_agent.flows.node_logic.stage3_intent import detect_intent, detect_intent_node
from portfolio_agent.flows.node_logic.stage4_entity_resolution import (
    reply_with_entity,
    resolve_entities,
    resolve_entities_node,
    resolve_one,
)
from portfolio_agent.flows.node_logic.stage5_context import assemble_context
from portfolio_agent.flows.node_logic.stage5_prompt import build_prompt
from portfolio_agent.flows.node_logic.stage6_generation import generate_reply
from portfolio_agent.flows.node_logic.stage7_finalize import finalize_response

__all__ = [
    "preprocess_message",
    "preprocess_text",
    "detect_and_translate",
    "SHORT_CIRCUIT_RULES",
    "apply_short_circuit",
    "detect_intent",
    "detect_intent_node",
    "resolve_entities",
    "resolve_entities_node",
    "resolve_one",
    "reply_with_entity",
    "assemble_context",
    "build_prompt",
    "generate_reply",
    "finalize_response",
]
