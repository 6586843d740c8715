"""Issue Solver: turns GitHub issues into validated, transactional file changes."""

__version__ = "0.1.0"
