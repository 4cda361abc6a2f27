from datetime import datetime, timezone

import pytest
from werkzeug.wrappers import Request

from flyteapi.actions import STATE_NEW, STATE_PENDING, STATE_SUCCESS, Action, Event, Pack, State
from flyteapi.execution_handlers import ExecutionHandlers, to_action_response, to_event
from flyteapi.packs import PackNotFoundError
from flyteapi.repositories import InMemoryActionRepository, InMemoryAuditRepository, InMemoryPackRepository
from flyteapi.responses import CONTENT_TYPE_JSON, Link

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
EVENT_BODY = '{"event": "MessageReceived", "payload": {"channelId": "123456"}}'


class RecordingFlowService:
    def __init__(self):
        self.events = []
        self.actions = []

    def handle_event(self, event):
        self.events.append(event)

    def handle_action(self, action):
        self.actions.append(action)


class BrokenPackRepo:
    def get(self, pack_id):
        raise RuntimeError("it is an error")

    def update_last_seen(self, pack_id):
        raise RuntimeError("it is an error")


class BrokenActionRepo:
    def find_new(self, pack, name):
        raise RuntimeError("it's a disaster")

    def get(self, action_id):
        raise RuntimeError("it's a disaster")

    def update(self, action):
        raise RuntimeError("it's a disaster")


def make_request(path, body=None, query=None):
    return Request.from_values(
        path=path, base_url="http://example.com", method="POST", data=body, query_string=query
    )


@pytest.fixture
def pack_repo():
    repo = InMemoryPackRepository()
    repo.add(Pack(id="Slack", name="Slack"))
    return repo


@pytest.fixture
def action_repo():
    return InMemoryActionRepository()


@pytest.fixture
def audit_repo():
    return InMemoryAuditRepository()


@pytest.fixture
def flow_service():
    return RecordingFlowService()


@pytest.fixture
def handlers(pack_repo, flow_service, action_repo, audit_repo):
    return ExecutionHandlers(pack_repo, flow_service, action_repo, audit_repo)


def add_action(action_repo, audit_repo, action_id, state, name=""):
    action = Action(id=action_id, name=name, pack_name="Slack", state=State(value=state, time=NOW))
    action.states = [action.state]
    action_repo.add(action)
    audit_repo.add(action)


def test_post_event_handles_valid_event(handlers, flow_service, pack_repo):
    body = '{"event": "MessageReceived", "payload": {"channelId": "123456"}, "createdAt": "2022-01-02T15:04:05Z"}'
    before = datetime.now(timezone.utc)
    response = handlers.post_event(make_request("/v1/packs/Slack/events", body), "Slack")
    after = datetime.now(timezone.utc)

    assert response.status_code == 202
    event = flow_service.events[0]
    assert event.name == "MessageReceived"
    assert event.pack == Pack(id="Slack", name="Slack")
    assert event.payload == {"channelId": "123456"}
    assert event.created_at == datetime(2022, 1, 2, 15, 4, 5, tzinfo=timezone.utc)
    assert before <= event.received_at <= after
    assert before <= pack_repo.last_seen("Slack") <= after


def test_post_event_returns_404_for_unknown_pack(handlers):
    response = handlers.post_event(make_request("/v1/packs/Other/events", EVENT_BODY), "Other")
    assert response.status_code == 404


def test_post_event_returns_500_when_pack_lookup_fails(flow_service, action_repo, audit_repo):
    handlers = ExecutionHandlers(BrokenPackRepo(), flow_service, action_repo, audit_repo)
    response = handlers.post_event(make_request("/v1/packs/Slack/events", EVENT_BODY), "Slack")
    assert response.status_code == 500


def test_post_event_returns_400_for_invalid_body(handlers, flow_service):
    response = handlers.post_event(make_request("/v1/packs/Slack/events", '{"invalidBody'), "Slack")
    assert response.status_code == 400
    assert flow_service.events == []


def test_complete_action_completes_and_handles_it(handlers, flow_service, action_repo, audit_repo, pack_repo):
    add_action(action_repo, audit_repo, "123", STATE_PENDING)

    response = handlers.complete_action(make_request("/v1/packs/Slack/actions/123/result", EVENT_BODY), "Slack", "123")

    assert response.status_code == 202
    event = flow_service.events[0]
    assert event.name == "MessageReceived"
    assert event.payload == {"channelId": "123456"}
    assert event.created_at == event.received_at
    action = flow_service.actions[0]
    assert action.id == "123"
    assert action.state.value == STATE_SUCCESS
    assert action.result == event
    assert action_repo.get("123").state.value == STATE_SUCCESS
    assert pack_repo.last_seen("Slack") is not None


def test_complete_action_returns_404_for_unknown_pack(handlers):
    response = handlers.complete_action(make_request("/x", EVENT_BODY), "Other", "123")
    assert response.status_code == 404


def test_complete_action_returns_500_when_pack_lookup_fails(flow_service, action_repo, audit_repo):
    handlers = ExecutionHandlers(BrokenPackRepo(), flow_service, action_repo, audit_repo)
    response = handlers.complete_action(make_request("/x", EVENT_BODY), "Slack", "123")
    assert response.status_code == 500


def test_complete_action_returns_400_for_invalid_body(handlers):
    response = handlers.complete_action(make_request("/x", '{"invalidBody'), "Slack", "123")
    assert response.status_code == 400


def test_complete_action_returns_404_for_unknown_action(handlers, flow_service):
    response = handlers.complete_action(make_request("/x", EVENT_BODY), "Slack", "123")
    assert response.status_code == 404
    assert flow_service.actions == []


def test_complete_action_returns_500_when_completion_fails(handlers, action_repo, audit_repo):
    add_action(action_repo, audit_repo, "123", STATE_NEW)
    response = handlers.complete_action(make_request("/x", EVENT_BODY), "Slack", "123")
    assert response.status_code == 500


def test_take_action_returns_any_new_action(handlers, action_repo, audit_repo, pack_repo):
    add_action(action_repo, audit_repo, "596759ef", STATE_NEW)

    response = handlers.take_action(make_request("/v1/packs/Slack/actions/take"), "Slack")

    assert response.status_code == 200
    assert response.headers["Content-Type"] == CONTENT_TYPE_JSON
    assert response.get_data(as_text=True) == (
        '{"command":"","input":null,"links":[{"href":"http://example.com/v1/packs/Slack/actions/596759ef/result",'
        '"rel":"http://example.com/swagger#/actionResult"}]}'
    )
    assert action_repo.get("596759ef").state.value == STATE_PENDING
    assert pack_repo.last_seen("Slack") is not None


def test_take_action_returns_action_with_given_name(handlers, action_repo, audit_repo):
    add_action(action_repo, audit_repo, "596759ef", STATE_NEW, name="SendMessage")

    response = handlers.take_action(
        make_request("/v1/packs/Slack/actions/take", query="actionName=SendMessage"), "Slack"
    )

    assert response.status_code == 200
    assert response.get_data(as_text=True) == (
        '{"command":"SendMessage","input":null,"links":[{"href":"http://example.com/v1/packs/Slack/actions/596759ef/result",'
        '"rel":"http://example.com/swagger#/actionResult"}]}'
    )


def test_take_action_returns_404_for_unknown_pack(handlers):
    assert handlers.take_action(make_request("/x"), "Other").status_code == 404


def test_take_action_returns_500_when_pack_lookup_fails(flow_service, action_repo, audit_repo):
    handlers = ExecutionHandlers(BrokenPackRepo(), flow_service, action_repo, audit_repo)
    assert handlers.take_action(make_request("/x"), "Slack").status_code == 500


def test_take_action_returns_500_when_taking_fails(pack_repo, flow_service, audit_repo):
    handlers = ExecutionHandlers(pack_repo, flow_service, BrokenActionRepo(), audit_repo)
    assert handlers.take_action(make_request("/x"), "Slack").status_code == 500


def test_take_action_returns_204_without_new_actions(handlers):
    assert handlers.take_action(make_request("/x"), "Slack").status_code == 204


def test_to_event_defaults_created_at_to_received_at():
    event = to_event(Pack(id="p"), EVENT_BODY)
    assert event.created_at == event.received_at
    assert event.pack == Pack(id="p")


@pytest.mark.parametrize("body", ['{"invalidBody', "", "[1, 2]", '{"event": 5}', '{"createdAt": "yesterday"}'])
def test_to_event_rejects_invalid_body(body):
    with pytest.raises(ValueError):
        to_event(Pack(id="p"), body)


def test_to_action_response_links_to_result():
    request = make_request("/v1/packs/Slack/actions/take")
    response = to_action_response(request, "Slack", Action(id="abc", name="Send", input={"a": 1}))
    assert response == {
        "command": "Send",
        "input": {"a": 1},
        "links": [
            Link(
                href="http://example.com/v1/packs/Slack/actions/abc/result",
                rel="http://example.com/swagger#/actionResult",
            )
        ],
    }


def test_pack_not_found_error_message():
    with pytest.raises(PackNotFoundError, match="pack not found"):
        InMemoryPackRepository().get("Slack")


def test_event_recorded_is_independent_of_pack(handlers, flow_service):
    handlers.post_event(make_request("/x", EVENT_BODY), "Slack")
    event = flow_service.events[0]
    assert event == Event(
        name="MessageReceived",
        pack=Pack(id="Slack", name="Slack"),
        payload={"channelId": "123456"},
        created_at=event.received_at,
        received_at=event.received_at,
    )