"""Apply mode: safe, transactional file mutation.

Validates LLM-proposed file operations, snapshots what they touch,
applies them in order, and rolls everything back on the first failure.
"""

from issuesolver.apply.schema import SolutionSchemaValidator
from issuesolver.apply.transaction import TransactionCoordinator

__all__ = ["SolutionSchemaValidator", "TransactionCoordinator"]
