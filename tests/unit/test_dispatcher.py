import pytest

from lb_ipam import InMemoryNodePool, LBController, Node, NodeNotFound, PoolExhausted
from lbipam_agent.dispatcher import EventDispatcher
from lbipam_agent.events import NodeAssign, NodeRelease, PoolUpdate


def build_dispatcher(*nodes: Node) -> EventDispatcher:
    return EventDispatcher(LBController(InMemoryNodePool(list(nodes))))


def test_dispatcher_routes_events():
    dispatcher = build_dispatcher(Node("node-1"), Node("node-2", assigned_ip="10.0.0.2"))

    assert dispatcher.handle(PoolUpdate(["10.0.0.1", "10.0.0.2"])) is None
    assert dispatcher.controller.usage() == {"10.0.0.1": 0, "10.0.0.2": 1}

    assert dispatcher.handle(NodeAssign("node-1", "req-1")) == "10.0.0.1"
    assert dispatcher.controller.usage() == {"10.0.0.1": 1, "10.0.0.2": 1}

    assert dispatcher.handle(NodeRelease("node-2", "req-2")) is None
    assert dispatcher.controller.usage() == {"10.0.0.1": 1, "10.0.0.2": 0}


def test_dispatcher_propagates_controller_errors(caplog):
    dispatcher = build_dispatcher(Node("node-1"))

    with pytest.raises(PoolExhausted):
        dispatcher.handle(NodeAssign("node-1", "req-1"))
    with pytest.raises(NodeNotFound):
        dispatcher.handle(NodeAssign("node-9", "req-2"))

    assert "req-1" in caplog.text


def test_dispatcher_release_of_unknown_node():
    dispatcher = build_dispatcher()
    dispatcher.handle(PoolUpdate(["10.0.0.1"]))

    dispatcher.handle(NodeRelease("node-1", "req-1"))

    assert dispatcher.controller.usage() == {"10.0.0.1": 0}


def test_dispatcher_rejects_unknown_events():
    dispatcher = build_dispatcher()

    with pytest.raises(TypeError):
        dispatcher.handle(object())  # type: ignore[arg-type]
