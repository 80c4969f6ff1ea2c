"""
A2A Task-State Store

This package persists the lifecycle of agent-to-agent tasks: creating them,
validating and recording state transitions, and answering polling queries,
with SQLAlchemy-backed durable storage (SQLite by default).
"""

__version__ = "0.1.0"

# Codec
from a2a_tasks.codec import decode, encode, extract_state

# Configuration
from a2a_tasks.config import Settings

# Errors
from a2a_tasks.errors import (
    AlreadyExistsError,
    CorruptRecordError,
    EncodingError,
    InvalidTransitionError,
    NotFoundError,
    SchemaNotInitializedError,
    StorageUnavailableError,
    TaskStoreError,
    UnknownStateError,
)

# Events
from a2a_tasks.events import EventEmitter, TaskEvent, TaskEventType

# Query layer
from a2a_tasks.query import TaskIndex

# State machine
from a2a_tasks.state_machine import TERMINAL_STATES, TaskState, validate_transition

# Store
from a2a_tasks.store import TaskRecord, TaskStore, TaskSummary

# Task document
from a2a_tasks.types import Artifact, Message, Part, TaskDocument, TaskStatus

__all__ = [
    # Version
    "__version__",
    # Document
    "TaskDocument",
    "TaskStatus",
    "Message",
    "Part",
    "Artifact",
    # Codec
    "encode",
    "decode",
    "extract_state",
    # State machine
    "TaskState",
    "TERMINAL_STATES",
    "validate_transition",
    # Store
    "TaskStore",
    "TaskRecord",
    "TaskSummary",
    "TaskIndex",
    # Events
    "EventEmitter",
    "TaskEvent",
    "TaskEventType",
    # Config
    "Settings",
    # Errors
    "TaskStoreError",
    "AlreadyExistsError",
    "NotFoundError",
    "InvalidTransitionError",
    "UnknownStateError",
    "EncodingError",
    "CorruptRecordError",
    "StorageUnavailableError",
    "SchemaNotInitializedError",
]
