from .config import RunConfig
from .dsl import step, wf
from .errors import (
    AdmissionError,
    AdmissionTimeout,
    Cancelled,
    ConfigError,
    LaunchError,
    StepError,
    StepTimeout,
    WaitError,
    WorkflowError,
    WorkflowValidationError,
)
from .events import Event, EventKind, MemoryNotifier, Notifier
from .gate import AdmissionGate
from .loader import (
    load_workflow,
    load_workflow_from_bytes,
    load_workflow_from_mapping,
    load_workflow_from_reader,
)
from .model import Step, StepStatus
from .process import ProcessRunner, RunResult
from .sink import Sink
from .workflow import Workflow

__version__ = "0.1.0"

__all__ = [
    "step", "wf", "RunConfig",
    "load_workflow", "load_workflow_from_bytes", "load_workflow_from_mapping", "load_workflow_from_reader",
    "Workflow", "Step", "StepStatus", "ProcessRunner", "RunResult", "AdmissionGate",
    "Event", "EventKind", "Notifier", "MemoryNotifier", "Sink",
    "StepError", "LaunchError", "WaitError", "StepTimeout", "WorkflowValidationError",
    "WorkflowError", "ConfigError", "AdmissionError", "Cancelled", "AdmissionTimeout",
]
