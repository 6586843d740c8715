"""Issue solver schema definitions.

All Pydantic v2 models used by the solver, the file-mutation pipeline,
and reporting.
"""

from issuesolver.schemas.config import (
    AIProvider,
    ExecutionMode,
    SafetyMode,
    SafetyPolicy,
    SolverConfig,
)
from issuesolver.schemas.issue import IssueComment, IssueContext
from issuesolver.schemas.report import ErrorReport, PipelineResult, SolutionReport
from issuesolver.schemas.solution import (
    ActionKind,
    AppendDirective,
    Confidence,
    DryRunEntry,
    ExecutionRecord,
    FileAction,
    FullReplaceDirective,
    ModifyDirective,
    PrependDirective,
    RecordAction,
    ReplaceDirective,
    Solution,
)

__all__ = [
    "AIProvider",
    "ActionKind",
    "AppendDirective",
    "Confidence",
    "DryRunEntry",
    "ErrorReport",
    "ExecutionMode",
    "ExecutionRecord",
    "FileAction",
    "FullReplaceDirective",
    "IssueComment",
    "IssueContext",
    "ModifyDirective",
    "PipelineResult",
    "PrependDirective",
    "RecordAction",
    "ReplaceDirective",
    "SafetyMode",
    "SafetyPolicy",
    "Solution",
    "SolutionReport",
    "SolverConfig",
]
