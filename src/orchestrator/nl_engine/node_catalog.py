"""Node kind catalog for automation graphs.

Every node kind the designer can emit is declared here with the engine type
it maps to, its required and optional parameters, and the flags the validator
relies on (trigger, terminal, optional, OAuth-blocked).

Required parameters carry a default only when a neutral value exists, such as
an expression that reads from the incoming item. Kinds whose required values
must come from the user (e.g. a database table) have no default.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Optional

from src.orchestrator.models.intent import TriggerType


@dataclass(frozen=True)
class NodeKindSpec:
    """Definition of a node kind.

    Attributes:
        kind: Catalog name used in graphs (e.g. "http_request").
        engine_type: Node type identifier on the automation engine.
        type_version: Engine node type version.
        required_params: Parameter name to expected Python type(s).
        defaults: Default values, for required and optional parameters.
        optional_params: Parameters filled from defaults when missing.
        integration: External integration the node talks to, if any.
        is_trigger: Entry node kind.
        is_terminal: May legitimately end a flow.
        is_optional: May be dropped by the validator when unreachable.
        requires_oauth: Needs per-user OAuth, which the shared engine lacks.
    """

    kind: str
    engine_type: str
    type_version: int = 1
    required_params: dict[str, tuple[type, ...]] = field(default_factory=dict)
    defaults: dict[str, Any] = field(default_factory=dict)
    optional_params: tuple[str, ...] = ()
    integration: Optional[str] = None
    is_trigger: bool = False
    is_terminal: bool = False
    is_optional: bool = False
    requires_oauth: bool = False


NODE_CATALOG: dict[str, NodeKindSpec] = {
    # Triggers
    "manual_trigger": NodeKindSpec(
        kind="manual_trigger",
        engine_type="n8n-nodes-base.manualTrigger",
        is_trigger=True,
    ),
    "schedule_trigger": NodeKindSpec(
        kind="schedule_trigger",
        engine_type="n8n-nodes-base.scheduleTrigger",
        type_version=1,
        required_params={"rule": (dict,)},
        defaults={"rule": {"interval": [{"field": "hours", "hoursInterval": 1}]}},
        is_trigger=True,
    ),
    "webhook_trigger": NodeKindSpec(
        kind="webhook_trigger",
        engine_type="n8n-nodes-base.webhook",
        type_version=1,
        required_params={"path": (str,)},
        defaults={"httpMethod": "POST", "responseMode": "onReceived"},
        optional_params=("httpMethod", "responseMode"),
        is_trigger=True,
    ),
    "event_trigger": NodeKindSpec(
        kind="event_trigger",
        engine_type="n8n-nodes-base.n8nTrigger",
        type_version=1,
        required_params={"events": (list,)},
        defaults={"events": ["activate"]},
        is_trigger=True,
    ),
    # Actions
    "http_request": NodeKindSpec(
        kind="http_request",
        engine_type="n8n-nodes-base.httpRequest",
        type_version=3,
        required_params={"url": (str,)},
        defaults={"url": '={{$json["url"]}}', "method": "GET", "options": {}},
        optional_params=("method", "options"),
        integration="http",
    ),
    "set_fields": NodeKindSpec(
        kind="set_fields",
        engine_type="n8n-nodes-base.set",
        required_params={"values": (dict,)},
        defaults={"values": {"string": [], "number": [], "boolean": []}},
    ),
    "code": NodeKindSpec(
        kind="code",
        engine_type="n8n-nodes-base.code",
        required_params={"jsCode": (str,)},
        defaults={"jsCode": "return items;", "mode": "runOnceForAllItems"},
        optional_params=("mode",),
    ),
    "if_condition": NodeKindSpec(
        kind="if_condition",
        engine_type="n8n-nodes-base.if",
        required_params={"conditions": (dict,)},
        defaults={"conditions": {"boolean": [{"value1": '={{$json["ok"]}}', "value2": True}]}},
    ),
    "wait": NodeKindSpec(
        kind="wait",
        engine_type="n8n-nodes-base.wait",
        defaults={"amount": 1, "unit": "minutes"},
        optional_params=("amount", "unit"),
        is_optional=True,
    ),
    "postgres": NodeKindSpec(
        kind="postgres",
        engine_type="n8n-nodes-base.postgres",
        required_params={"table": (str,)},
        defaults={"operation": "insert"},
        optional_params=("operation",),
        integration="postgres",
        is_terminal=True,
    ),
    # Terminals
    "email_send": NodeKindSpec(
        kind="email_send",
        engine_type="n8n-nodes-base.emailSend",
        required_params={"toEmail": (str,)},
        defaults={
            "toEmail": '={{$json["email"]}}',
            "subject": "Notification from AutoFlow",
            "text": '={{$json["message"]}}',
        },
        optional_params=("subject", "text"),
        integration="email",
        is_terminal=True,
    ),
    "respond_to_webhook": NodeKindSpec(
        kind="respond_to_webhook",
        engine_type="n8n-nodes-base.respondToWebhook",
        defaults={"respondWith": "json", "responseBody": '={{ $json }}'},
        optional_params=("respondWith", "responseBody"),
        is_terminal=True,
    ),
    "no_op": NodeKindSpec(
        kind="no_op",
        engine_type="n8n-nodes-base.noOp",
        is_terminal=True,
        is_optional=True,
    ),
    # Require per-user OAuth; catalogued so they can be reported precisely.
    "slack_message": NodeKindSpec(
        kind="slack_message",
        engine_type="n8n-nodes-base.slack",
        required_params={"channel": (str,), "text": (str,)},
        integration="slack",
        is_terminal=True,
        requires_oauth=True,
    ),
    "google_sheets": NodeKindSpec(
        kind="google_sheets",
        engine_type="n8n-nodes-base.googleSheets",
        required_params={"sheetId": (str,)},
        integration="google",
        is_terminal=True,
        requires_oauth=True,
    ),
}

# Entry node kind for each intent trigger.
TRIGGER_KINDS: dict[TriggerType, str] = {
    "manual": "manual_trigger",
    "schedule": "schedule_trigger",
    "webhook": "webhook_trigger",
    "event": "event_trigger",
}

# Step action aliases, lower-cased. Catalog kind names resolve to themselves.
ACTION_ALIASES: dict[str, str] = {
    "fetch": "http_request",
    "get": "http_request",
    "request": "http_request",
    "http": "http_request",
    "call_api": "http_request",
    "download": "http_request",
    "notify": "email_send",
    "email": "email_send",
    "send_email": "email_send",
    "alert": "email_send",
    "transform": "set_fields",
    "map": "set_fields",
    "set": "set_fields",
    "script": "code",
    "compute": "code",
    "filter": "if_condition",
    "condition": "if_condition",
    "branch": "if_condition",
    "if": "if_condition",
    "delay": "wait",
    "pause": "wait",
    "store": "postgres",
    "save": "postgres",
    "insert": "postgres",
    "respond": "respond_to_webhook",
    "reply": "respond_to_webhook",
    "slack": "slack_message",
    "post_to_slack": "slack_message",
    "sheets": "google_sheets",
}

# Engine node types the shared engine runs without per-user credentials.
SUPPORTED_ENGINE_TYPES = frozenset(
    {
        "n8n-nodes-base.webhook",
        "n8n-nodes-base.scheduleTrigger",
        "n8n-nodes-base.manualTrigger",
        "n8n-nodes-base.n8nTrigger",
        "n8n-nodes-base.set",
        "n8n-nodes-base.code",
        "n8n-nodes-base.if",
        "n8n-nodes-base.wait",
        "n8n-nodes-base.noOp",
        "n8n-nodes-base.httpRequest",
        "n8n-nodes-base.emailSend",
        "n8n-nodes-base.respondToWebhook",
        "n8n-nodes-base.postgres",
    }
)

DEFAULT_TERMINAL_KIND = "no_op"


def get_spec(kind: str) -> Optional[NodeKindSpec]:
    """Get a node kind definition.

    Args:
        kind: Catalog kind name.

    Returns:
        NodeKindSpec if the kind is catalogued, None otherwise.
    """
    return NODE_CATALOG.get(kind)


def resolve_action(action: str) -> Optional[str]:
    """Resolve a step action to a catalog kind.

    Args:
        action: Step action as extracted from the request.

    Returns:
        Catalog kind name, or None if the action is unknown.
    """
    normalized = action.strip().lower().replace(" ", "_").replace("-", "_")
    if normalized in NODE_CATALOG and not NODE_CATALOG[normalized].is_trigger:
        return normalized
    return ACTION_ALIASES.get(normalized)


def default_parameters(kind: str) -> dict[str, Any]:
    """Return a fresh copy of a kind's default parameters."""
    spec = NODE_CATALOG.get(kind)
    if spec is None:
        return {}
    # Nested defaults are dicts/lists; copy so graphs never share them.
    return {k: _copy_value(v) for k, v in spec.defaults.items()}


def _copy_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _copy_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_copy_value(v) for v in value]
    return value


def is_trigger(kind: str) -> bool:
    """Whether the kind is an entry node."""
    spec = NODE_CATALOG.get(kind)
    return spec is not None and spec.is_trigger


def is_terminal(kind: str) -> bool:
    """Whether the kind may end a flow."""
    spec = NODE_CATALOG.get(kind)
    return spec is not None and spec.is_terminal


def is_optional(kind: str) -> bool:
    """Whether the kind may be removed when unreachable."""
    spec = NODE_CATALOG.get(kind)
    return spec is not None and spec.is_optional


@lru_cache(maxsize=1)
def supported_kinds() -> frozenset[str]:
    """Return the catalog kinds the shared engine supports.

    Computed once per process from SUPPORTED_ENGINE_TYPES.
    """
    return frozenset(
        spec.kind
        for spec in NODE_CATALOG.values()
        if spec.engine_type in SUPPORTED_ENGINE_TYPES and not spec.requires_oauth
    )
