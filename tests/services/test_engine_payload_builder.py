"""Tests for graph to engine payload translation."""

import pytest

from src.orchestrator.models import Graph, Intent, IntentStep, Node
from src.orchestrator.nl_engine.graph_designer import GraphDesigner
from src.services.engine_payload_builder import (
    build_engine_payload,
    node_names,
    structural_signature,
    webhook_path,
)


def test_linear_payload(linear_graph):
    """Nodes carry engine types; edges become main connections."""
    payload = build_engine_payload(linear_graph, "FOLDER-P01-U1 Ping")

    assert payload["name"] == "FOLDER-P01-U1 Ping"
    assert [n["type"] for n in payload["nodes"]] == [
        "n8n-nodes-base.manualTrigger",
        "n8n-nodes-base.httpRequest",
        "n8n-nodes-base.noOp",
    ]
    assert payload["nodes"][1]["typeVersion"] == 3
    assert payload["nodes"][1]["position"] == [460, 300]
    assert payload["connections"]["manual_trigger_1"] == {
        "main": [[{"node": "http_request_2", "type": "main", "index": 0}]]
    }


def test_branch_outputs():
    """true edges use output 0 and false edges output 1."""
    intent = Intent(
        goal="Alert",
        trigger="manual",
        steps=[IntentStep(action="filter"), IntentStep(action="notify")],
    )
    graph = GraphDesigner().design(intent)
    payload = build_engine_payload(graph, "x")
    outputs = payload["connections"]["if_condition_2"]["main"]
    assert outputs[0][0]["node"] == "email_send_3"
    assert outputs[1][0]["node"] == "no_op_4"


def test_unknown_kind_rejected():
    """Kinds without an engine mapping cannot be built."""
    graph = Graph(nodes=(Node(id="x_1", kind="teleport"),))
    with pytest.raises(ValueError):
        build_engine_payload(graph, "x")


def test_signature_ignores_layout_and_metadata(linear_graph):
    """Positions, ids and engine fields do not change the signature."""
    submitted = build_engine_payload(linear_graph, "x")
    fetched = build_engine_payload(linear_graph, "x")
    fetched["id"] = "wf-9"
    fetched["active"] = True
    for node in fetched["nodes"]:
        node["position"] = [0, 0]
        node["id"] = "engine-generated"
    assert structural_signature(fetched) == structural_signature(submitted)


def test_signature_detects_parameter_change(linear_graph):
    """A changed parameter changes the signature."""
    submitted = build_engine_payload(linear_graph, "x")
    fetched = build_engine_payload(linear_graph, "x")
    fetched["nodes"][1]["parameters"]["url"] = "https://elsewhere"
    assert structural_signature(fetched) != structural_signature(submitted)
    assert node_names(fetched) == node_names(submitted)


def test_webhook_path(linear_graph):
    """Only webhook-triggered graphs have a path."""
    assert webhook_path(linear_graph) is None
    graph = GraphDesigner().design(
        Intent(goal="Orders in", trigger="webhook", steps=[IntentStep(action="transform")])
    )
    assert webhook_path(graph) == "orders-in"
