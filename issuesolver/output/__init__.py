"""Report files, commit messages, and pull request text."""
