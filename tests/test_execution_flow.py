from flyteapi.actions import STATE_FATAL, STATE_NEW, STATE_SUCCESS, Action, Event, Pack, State
from flyteapi.execution_flow import ExecutionFlow
from flyteapi.steps import Command, EventDef, Step


class Repo:
    def __init__(self, error=None):
        self.error = error
        self.added = []

    def add(self, action):
        if self.error is not None:
            raise self.error
        self.added.append(action)


def new_step(step_id, event_name, pack_name, **kwargs):
    return Step(
        id=step_id,
        event=EventDef(name=event_name, pack_name=pack_name),
        command=Command(name="cmd-" + step_id, pack_name="packCmd"),
        **kwargs,
    )


def ok_event():
    return Event(name="eventOK", pack=Pack(name="packOK"))


def test_handle_event_executes_all_candidate_steps():
    actions, audit = Repo(), Repo()
    flow = ExecutionFlow(
        steps=[
            new_step("candidateA", "eventOK", "packOK"),
            new_step("nonCandidate", "eventNotOK", "packOK"),
            new_step("candidateB", "eventOK", "packOK"),
        ]
    )

    flow.handle_event(ok_event(), actions, audit)

    assert set(flow.actions) == {"candidateA", "candidateB"}
    assert flow.actions["candidateA"].step_id == "candidateA"
    assert flow.actions["candidateB"].name == "cmd-candidateB"
    assert len(actions.added) == 2
    assert len(audit.added) == 2


def test_handle_event_creates_action_including_flow_details():
    flow = ExecutionFlow(
        uuid="flowUUID",
        name="flowA",
        correlation_id="corr",
        steps=[new_step("stepA", "eventOK", "packOK")],
    )

    flow.handle_event(ok_event(), Repo(), Repo())

    action = flow.actions["stepA"]
    assert action.flow_name == "flowA"
    assert action.flow_uuid == "flowUUID"
    assert action.correlation_id == "corr"
    assert action.step_id == "stepA"


def test_handle_event_skips_step_when_event_name_does_not_match():
    actions = Repo()
    flow = ExecutionFlow(steps=[new_step("stepA", "eventA", "packOK")])

    flow.handle_event(Event(name="eventNotOK", pack=Pack(name="packOK")), actions, Repo())

    assert flow.actions == {}
    assert actions.added == []


def test_handle_event_skips_step_when_pack_name_does_not_match():
    actions = Repo()
    flow = ExecutionFlow(steps=[new_step("stepA", "eventOK", "packA")])

    flow.handle_event(Event(name="eventOK", pack=Pack(name="packNotOK")), actions, Repo())

    assert flow.actions == {}
    assert actions.added == []


def test_handle_event_skips_step_that_already_has_an_action():
    existing = Action()
    actions = Repo()
    flow = ExecutionFlow(
        steps=[new_step("stepWithExistingFlowAction", "eventOK", "packOK")],
        actions={"stepWithExistingFlowAction": existing},
    )

    flow.handle_event(ok_event(), actions, Repo())

    assert actions.added == []
    assert flow.actions["stepWithExistingFlowAction"] is existing


def test_handle_event_runs_step_without_dependencies():
    step = new_step("withoutDependsOn", "eventOK", "packOK")
    flow = ExecutionFlow(steps=[step])

    assert flow.candidate_steps(ok_event()) == [step]


def test_handle_event_runs_step_when_dependency_satisfied():
    flow = ExecutionFlow(
        steps=[new_step("withDependsOn", "eventOK", "packOK", depends_on=["stepA"])],
        actions={"stepA": Action(state=State(value=STATE_SUCCESS))},
    )

    flow.handle_event(ok_event(), Repo(), Repo())

    assert "withDependsOn" in flow.actions


def test_fatal_dependency_counts_as_finished():
    step = new_step("withDependsOn", "eventOK", "packOK", depends_on=["stepA"])
    flow = ExecutionFlow(steps=[step], actions={"stepA": Action(state=State(value=STATE_FATAL))})

    assert flow.candidate_steps(ok_event()) == [step]


def test_any_finished_dependency_is_enough():
    step = new_step("s", "eventOK", "packOK", depends_on=["a", "b"])
    flow = ExecutionFlow(steps=[step], actions={"b": Action(state=State(value=STATE_SUCCESS))})

    assert flow.candidate_steps(ok_event()) == [step]


def test_handle_event_skips_step_when_dependency_not_satisfied():
    actions = Repo()
    flow = ExecutionFlow(
        steps=[new_step("notSatisfiedDependsOn", "eventOK", "packOK", depends_on=["notFinishedStep"])],
        actions={"notFinishedStep": Action(state=State(value=STATE_NEW))},
    )

    flow.handle_event(ok_event(), actions, Repo())

    assert actions.added == []
    assert "notSatisfiedDependsOn" not in flow.actions


def test_handle_event_produces_nothing_when_step_yields_no_action():
    actions = Repo()
    flow = ExecutionFlow(steps=[new_step("nilAction", "eventOK", "packOK", criteria="false")])

    flow.handle_event(ok_event(), actions, Repo())

    assert actions.added == []
    assert flow.actions == {}


def test_handle_event_continues_after_step_error():
    actions = Repo()
    flow = ExecutionFlow(
        steps=[
            new_step("returnError", "eventOK", "packOK", context={"bad": "{{invalidTemplate"}),
            new_step("candidateStep", "eventOK", "packOK"),
        ]
    )

    flow.handle_event(ok_event(), actions, Repo())

    assert list(flow.actions) == ["candidateStep"]
    assert [action.step_id for action in actions.added] == ["candidateStep"]


def test_handle_event_does_not_record_action_that_failed_to_save():
    flow = ExecutionFlow(steps=[new_step("stepA", "eventOK", "packOK")])

    flow.handle_event(ok_event(), Repo(error=RuntimeError("down")), Repo())

    assert flow.actions == {}


def test_handle_event_keeps_action_when_audit_fails():
    actions = Repo()
    flow = ExecutionFlow(steps=[new_step("stepA", "eventOK", "packOK")])

    flow.handle_event(ok_event(), actions, Repo(error=RuntimeError("down")))

    assert list(flow.actions) == ["stepA"]
    assert actions.added == [flow.actions["stepA"]]


def test_actions_use_flow_context():
    step = Step(
        id="s",
        event=EventDef(name="eventOK", pack_name="packOK"),
        command=Command(name="cmd", input="{{ Context.room }}"),
    )
    flow = ExecutionFlow(steps=[step], context={"room": "room1234"})

    flow.handle_event(ok_event(), Repo(), Repo())

    assert flow.actions["s"].input == "room1234"