"""
CodeShift Execution Pipeline
============================

Turns a natural-language instruction plus a repository path into a
journaled, applied set of file edits.

Components (leaves first):
- TreeScanner: repository corpus + tree rendering
- select_relevant: keyword relevance filter
- EditOracle: bounded context -> structured edit plan
- ChangeJournal: write-ahead change records
- EditApplier: per-file isolated writes
- ExecutionOrchestrator: sequencing, request lifecycle, summary
"""

from src.core.pipeline.scanner import FileRecord, ScanResult, TreeScanner
from src.core.pipeline.selector import extract_keywords, select_relevant
from src.core.pipeline.oracle import EditOracle, ParsedPlan, ParseFailure, parse_reply
from src.core.pipeline.journal import ChangeJournal
from src.core.pipeline.requests import ExecutionRequestStore
from src.core.pipeline.applier import ApplyOutcome, EditApplier
from src.core.pipeline.orchestrator import ExecutionOrchestrator, ExecutionResult

__all__ = [
    "FileRecord",
    "ScanResult",
    "TreeScanner",
    "extract_keywords",
    "select_relevant",
    "EditOracle",
    "ParsedPlan",
    "ParseFailure",
    "parse_reply",
    "ChangeJournal",
    "ExecutionRequestStore",
    "ApplyOutcome",
    "EditApplier",
    "ExecutionOrchestrator",
    "ExecutionResult",
]
