"""Job workflow: background runner, executor, human gates and progress streaming."""

from blogagent.workflow.executor import WorkflowExecutor
from blogagent.workflow.gates import GateController
from blogagent.workflow.runner import JobRunner
from blogagent.workflow.stream import ProgressStreamPublisher, StreamEvent
from blogagent.workflow.stream_client import ConnectionState, StreamClient

__all__ = [
    "WorkflowExecutor",
    "GateController",
    "JobRunner",
    "ProgressStreamPublisher",
    "StreamEvent",
    "ConnectionState",
    "StreamClient",
]
