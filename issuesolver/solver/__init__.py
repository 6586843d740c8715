"""Solution generation: prompt building, LLM calls, and response parsing."""

from issuesolver.solver.solver import IssueSolver

__all__ = ["IssueSolver"]
