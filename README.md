# flyteapi

`flyteapi` is the core of an event-driven workflow service. It is built around three ideas:

* **Packs** are external integrations, such as a chat bot or a deployment tool. A pack posts
  **events** and takes **actions**.
* **Flows** are named sets of **steps**. Each step waits for an event from a pack and then
  issues a **command** to a pack.
* **Actions** are commands waiting to be done. A pack takes an action, which moves it from
  `NEW` to `PENDING`. The pack then completes it with a result event, which moves it to
  `SUCCESS`, or to `FATAL` when the event is named `FATAL`. Result events feed back into the
  flow run, so steps that declare `depends_on` can fire once any one of the steps they depend
  on has finished.

The HTTP side is a set of handlers that take a Werkzeug `Request` and return a Werkzeug
`Response`. Responses are JSON by default, or YAML when the client sends
`Accept: application/x-yaml`. Hypermedia links are built from the request's scheme and host.

Install with `pip install .`, and `pip install .[test]` to run the tests with `pytest`.

## Flow definitions

`flyteapi.flows` holds the JSON form of a flow (`Flow`, `FlowStep`, `FlowEvent`,
`FlowCommand`) and a store for them:

```python
from flyteapi.flows import Flow, InMemoryFlowRepository

flow = Flow.from_dict({
    "name": "redeploy_flow",
    "description": "Redeploys app",
    "steps": [
        {
            "id": "chat_start",
            "event": {"packName": "Chat", "name": "MessageReceived"},
            "context": {"roomId": "room1234"},
            "criteria": "{{ Event.Payload.message == 'deploy' }}",
            "command": {
                "packName": "Deployer",
                "name": "PutArtifact",
                "input": {"room": "{{ Context.roomId }}"},
            },
        }
    ],
})

repo = InMemoryFlowRepository()
stored = repo.add(flow)
assert repo.get("redeploy_flow").name == "redeploy_flow"
assert repo.history(stored.uuid).uuid == stored.uuid
```

`InMemoryFlowRepository` keeps the latest flow for each name and a history of every version
added; `add` gives each version a new uuid if it has none. `remove` deletes only the latest
entry. `remove`, `get` and `history` raise `FlowNotFoundError` when nothing matches.
`find_all` returns the names and descriptions of the latest flows, sorted by name.

### Serving flow definitions

`flyteapi.flow_handlers.FlowHandlers(repository, schema_path="flow-schema.json")` offers:

* `post_flow(request)` checks the body against the JSON schema at `schema_path`
  (`validate_against_schema`) and stores the flow. It answers `201` with a `Location` header,
  `500` if the schema is missing or the body fails it, and `400` if the body cannot be read
  as a flow.
* `get_flows(request)` lists flows with links.
* `get_flow(request, flow_name)` returns one flow, or `404`.
* `delete_flow(request, flow_name)` answers `204`, or `404`.

`flyteapi.info` provides `index(request)`, `v1(request)` and
`v1_swagger(request, swagger_file="swagger/v1.yml")`. The route templates and documentation
anchors used for links live in `flyteapi.paths` (`uri_doc_path_for`).

## Running flows

The running side uses its own types: `flyteapi.steps` (`Step`, `EventDef`, `Command`) and
`flyteapi.execution_flow.ExecutionFlow`. Step context, criteria, pack labels and command input
are Jinja2 templates rendered with `Event` (with `Name`, `Pack`, `Payload`, `CreatedAt`,
`ReceivedAt`) and `Context` in scope. A criteria template must render to a boolean word such as
`true`, `True`, `1`, `false` or `0`; anything else raises `StepError`.

```python
import json

from werkzeug.test import EnvironBuilder
from werkzeug.wrappers import Request

from flyteapi.actions import Pack
from flyteapi.execution_flow import ExecutionFlow
from flyteapi.execution_handlers import ExecutionHandlers
from flyteapi.flow_service import FlowService
from flyteapi.repositories import (
    InMemoryActionRepository,
    InMemoryAuditRepository,
    InMemoryExecutionFlowRepository,
    InMemoryPackRepository,
)
from flyteapi.steps import Command, EventDef, Step

actions = InMemoryActionRepository()
audit = InMemoryAuditRepository()
packs = InMemoryPackRepository()
flows = InMemoryExecutionFlowRepository(actions)

packs.add(Pack(id="Chat", name="Chat"))
packs.add(Pack(id="Deployer", name="Deployer"))
flows.add(ExecutionFlow(name="deploy", steps=[
    Step(
        id="start",
        event=EventDef(name="MessageReceived", pack_name="Chat"),
        command=Command(name="Deploy", pack_name="Deployer",
                        input={"text": "{{ Event.Payload.text }}"}),
    ),
]))

handlers = ExecutionHandlers(packs, FlowService(flows, actions, audit), actions, audit)


def post(path, data=None):
    return Request(EnvironBuilder(path=path, method="POST", data=data).get_environ())


reply = handlers.post_event(
    post("/v1/packs/Chat/events", '{"event": "MessageReceived", "payload": {"text": "go"}}'),
    "Chat",
)
assert reply.status_code == 202

reply = handlers.take_action(post("/v1/packs/Deployer/actions/take"), "Deployer")
taken = json.loads(reply.get_data())
assert taken["command"] == "Deploy" and taken["input"] == {"text": "go"}

action_id = taken["links"][0]["href"].rsplit("/", 2)[-2]
reply = handlers.complete_action(
    post(f"/v1/packs/Deployer/actions/{action_id}/result", '{"event": "Deployed"}'),
    "Deployer",
    action_id,
)
assert reply.status_code == 202
```

`ExecutionHandlers(pack_repo, flow_service, action_repo, audit_repo)` offers:

* `post_event(request, pack_id)` answers `202`, `404` for an unknown pack, `400` for a body
  that is not a valid event.
* `take_action(request, pack_id)` hands the pack its oldest matching `NEW` action (the
  `actionName` request value narrows it by name), or answers `204` when there is none.
* `complete_action(request, pack_id, action_id)` finishes the action, passes the result event
  to new flows and to the run the action belongs to, and answers `202`. It answers `404` when
  the action does not exist or belongs to a pack with a different name or labels, and `500`
  when the action is not `PENDING`.

Each call for a known pack records its last-seen time (`InMemoryPackRepository.last_seen`).

`FlowService(flow_repo, action_repo, audit_repo, executor=None)` starts new runs for events
and continues runs for completed actions. Pass a `concurrent.futures.Executor` to run new
flows off the calling thread.

The stores in `flyteapi.repositories` keep everything in memory. Action and audit updates
succeed only if the stored action is still in the state the update moved it from; otherwise
they raise `ActionNotFoundError`. Adding an id twice raises `ConflictError`. Any objects with
the same methods can be used in their place.

## HTTP helpers

* `flyteapi.responses.write_response(request, value)` renders dicts, lists and `Link`s as
  JSON or YAML.
* `flyteapi.uribuilder.UriBuilder(request)` builds links: `path(...)`, `parent()`,
  `replace(param, value)`, `build()`.
* `flyteapi.forwarding.RequestInterceptor(app)` is WSGI middleware. It rewrites the scheme and
  host from `X-Forwarded-Proto`, then `X-Flyte-Host` or `X-Forwarded-Host`.
* `flyteapi.paging.Page.from_request(request, total_items)` reads `page` and `per_page`:
  `per_page` defaults to 30 and is capped at 300, and `page` defaults to 1 and is clamped to
  the last page. `page_links_for(uri, links)` appends `first`, `prev`, `next` and `last`
  links where they apply.

## What this package does not do

* There is no WSGI application, routing table or command that starts a server. The handlers
  have to be wired into an application of your own.
* Storage is in memory only and is lost when the process ends.
* Flow definitions (`flows.Flow`) and running flows (`execution_flow.ExecutionFlow`) are kept
  in separate stores. A flow posted through `FlowHandlers` is not turned into a runnable flow
  by the package.
* There are no endpoints to register or list packs, no health check, no authentication and no
  removal of packs that have gone silent.