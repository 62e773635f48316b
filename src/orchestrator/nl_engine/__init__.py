"""Natural Language Engine for building automation graphs.

This module provides intent parsing, the node catalog, the graph template
library, graph design, and graph validation with bounded auto-fixing.
"""

from src.orchestrator.nl_engine.node_catalog import (
    ACTION_ALIASES,
    NODE_CATALOG,
    TRIGGER_KINDS,
    NodeKindSpec,
    get_spec,
    resolve_action,
    supported_kinds,
)
from src.orchestrator.nl_engine.templates import (
    TEMPLATE_LIBRARY_VERSION,
    TEMPLATES,
    GraphTemplate,
    match_template,
)
from src.orchestrator.nl_engine.graph_designer import GraphDesigner
from src.orchestrator.nl_engine.graph_validator import (
    DEFAULT_AUTO_FIX_BUDGET,
    GraphValidator,
)
from src.orchestrator.nl_engine.intent_parser import (
    IntentParser,
    parse_intent_payload,
)

__all__ = [
    # Node catalog
    "NODE_CATALOG",
    "TRIGGER_KINDS",
    "ACTION_ALIASES",
    "NodeKindSpec",
    "get_spec",
    "resolve_action",
    "supported_kinds",
    # Templates
    "TEMPLATES",
    "TEMPLATE_LIBRARY_VERSION",
    "GraphTemplate",
    "match_template",
    # Design and validation
    "GraphDesigner",
    "GraphValidator",
    "DEFAULT_AUTO_FIX_BUDGET",
    # Intent parsing
    "IntentParser",
    "parse_intent_payload",
]
