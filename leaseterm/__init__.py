"""leaseterm: resumable lease-termination workflow."""

from .contracts import (
    Checkpoint,
    DamageRecord,
    InvoiceLineItem,
    MediaAsset,
    MediaKind,
    UploadFile,
    WorkflowSnapshot,
    WorkflowState,
)
from .controller import TerminationWorkflow
from .gateway import CheckpointGateway, HttpCheckpointGateway, RepositoryCheckpointGateway
from .persistence import get_repository
from .session import Session
from .stages import TERMINATION_STAGES, StageDescriptor, StageRegistry

__version__ = "0.1.0"
__all__ = [
    "Checkpoint",
    "CheckpointGateway",
    "DamageRecord",
    "HttpCheckpointGateway",
    "InvoiceLineItem",
    "MediaAsset",
    "MediaKind",
    "RepositoryCheckpointGateway",
    "Session",
    "StageDescriptor",
    "StageRegistry",
    "TERMINATION_STAGES",
    "TerminationWorkflow",
    "UploadFile",
    "WorkflowSnapshot",
    "WorkflowState",
    "get_repository",
]
