"""Execution of test plans through host runners."""

from .adapter import ExecutionAdapter
from .hosts import PATH_SEPARATOR, HostRunner, RecordingRunner, SuiteRecord, TestRecord
from .results import ExecutionResult, ExecutionStatus, ResultStore

__all__ = (
    'PATH_SEPARATOR',
    'ExecutionAdapter',
    'ExecutionResult',
    'ExecutionStatus',
    'HostRunner',
    'RecordingRunner',
    'ResultStore',
    'SuiteRecord',
    'TestRecord',
)
