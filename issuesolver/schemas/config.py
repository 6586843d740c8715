"""Runtime configuration for the issue solver.

The workflow is driven entirely by environment variables. SolverConfig
collects them into one validated model; SafetyPolicy is the slice of it
the file-mutation pipeline consumes.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from enum import StrEnum

from pydantic import BaseModel, Field


class AIProvider(StrEnum):
    """Hosted LLM backends the solver can call."""

    GEMINI = "gemini"
    OPENAI = "openai"


class SafetyMode(StrEnum):
    """How strictly proposed file contents are checked.

    safe:   heuristics also scan modify-directive payloads
    normal: heuristics and syntax checks on plain-string content
    fast:   heuristics only, syntax checks skipped
    """

    SAFE = "safe"
    NORMAL = "normal"
    FAST = "fast"


class ExecutionMode(StrEnum):
    """Breadth of the solve run."""

    AUTO = "auto"
    DETAILED = "detailed"


DEFAULT_GEMINI_MODEL = "gemini-2.5-pro"
DEFAULT_OPENAI_MODEL = "gpt-4o"

# Checked in order; the first match wins
_GEMINI_MODEL_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"@gemini-flash", re.IGNORECASE), "gemini-2.5-flash"),
    (re.compile(r"@gemini-pro", re.IGNORECASE), "gemini-2.5-pro"),
    (re.compile(r"model:\s*flash", re.IGNORECASE), "gemini-2.5-flash"),
    (re.compile(r"model:\s*pro", re.IGNORECASE), "gemini-2.5-pro"),
    (re.compile(r"use\s+flash", re.IGNORECASE), "gemini-2.5-flash"),
    (re.compile(r"use\s+pro", re.IGNORECASE), "gemini-2.5-pro"),
]

_OPENAI_MODEL_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"gpt-4o-mini", re.IGNORECASE), "gpt-4o-mini"),
    (re.compile(r"gpt-4o", re.IGNORECASE), "gpt-4o"),
    (re.compile(r"gpt-4\.1-mini", re.IGNORECASE), "gpt-4.1-mini"),
    (re.compile(r"gpt-4\.1", re.IGNORECASE), "gpt-4.1"),
    (re.compile(r"o3-mini", re.IGNORECASE), "o3-mini"),
    (re.compile(r"o4-mini", re.IGNORECASE), "o4-mini"),
]

_OPENAI_TRIGGERS = [
    re.compile(r"@gpt", re.IGNORECASE),
    re.compile(r"use.*gpt", re.IGNORECASE),
    re.compile(r"openai", re.IGNORECASE),
]


class SafetyPolicy(BaseModel):
    """Safety knobs consumed by the file-mutation pipeline."""

    mode: SafetyMode = Field(default=SafetyMode.NORMAL, description="Content check strictness")
    keep_backups: bool = Field(
        default=False, description="Retain backups after a successful transaction"
    )
    coerce_actions: bool = Field(
        default=True, description="Reinterpret create/modify based on whether the target exists"
    )

    @property
    def check_syntax(self) -> bool:
        return self.mode != SafetyMode.FAST

    @property
    def scan_directives(self) -> bool:
        return self.mode == SafetyMode.SAFE


class SolverConfig(BaseModel):
    """Everything the workflow reads from its environment."""

    issue_number: int = Field(description="Issue to solve")
    repository: str = Field(default="", description="owner/repo slug")
    github_token: str = Field(default="", description="Token for the GitHub REST API")
    api_url: str = Field(default="https://api.github.com", description="GitHub REST API base")

    issue_title: str = Field(default="", description="Fallback issue title")
    issue_body: str = Field(default="", description="Fallback issue body")
    issue_labels: list[str] = Field(default_factory=list, description="Fallback issue labels")
    comment_body: str = Field(default="", description="Triggering comment body")

    provider: AIProvider = Field(default=AIProvider.GEMINI, description="LLM backend")
    gemini_api_key: str = Field(default="", description="Google Gemini API key")
    openai_api_key: str = Field(default="", description="OpenAI API key")
    gemini_model: str = Field(default=DEFAULT_GEMINI_MODEL, description="Gemini model name")
    openai_model: str = Field(default=DEFAULT_OPENAI_MODEL, description="OpenAI model name")
    max_retries: int = Field(default=3, ge=1, description="LLM attempts per solve")
    retry_delay: float = Field(default=2.0, ge=0.0, description="Seconds between LLM attempts")
    timeout: float = Field(default=3600.0, gt=0.0, description="Seconds allowed per LLM call")

    execution_mode: ExecutionMode = Field(default=ExecutionMode.AUTO, description="Solve breadth")
    safety: SafetyPolicy = Field(default_factory=SafetyPolicy, description="Mutation safety policy")
    dry_run: bool = Field(default=False, description="Report planned changes without writing")
    target_files: list[str] = Field(default_factory=list, description="Files to give the LLM as context")
    generate_report: bool = Field(default=False, description="Write issue_solution_report.json")

    run_tests: bool = Field(default=True, description="Run the test command after applying")
    test_command: str = Field(default="npm test", description="Test command")
    test_max_retries: int = Field(default=3, ge=1, description="Solve/apply/test attempts")
    test_timeout: int = Field(default=300, gt=0, description="Seconds allowed per test run")

    base_branch: str = Field(default="main", description="Base branch for the pull request")

    @property
    def model_name(self) -> str:
        return self.openai_model if self.provider == AIProvider.OPENAI else self.gemini_model

    @property
    def api_key(self) -> str:
        return self.openai_api_key if self.provider == AIProvider.OPENAI else self.gemini_api_key

    @property
    def api_key_env(self) -> str:
        return "OPENAI_API_KEY" if self.provider == AIProvider.OPENAI else "GEMINI_API_KEY"

    @property
    def litellm_model(self) -> str:
        """Model identifier in LiteLLM's provider/model form."""
        return f"{self.provider.value}/{self.model_name}"

    @property
    def owner_repo(self) -> tuple[str, str]:
        owner, _, repo = self.repository.partition("/")
        return owner, repo

    def validate_required(self) -> None:
        """Raise ValueError when a required setting is missing."""
        if not self.api_key:
            raise ValueError(f"{self.api_key_env} is required when using {self.provider.value}")
        if self.issue_number <= 0:
            raise ValueError("ISSUE_NUMBER is required")

    def select_from_text(self, *texts: str, env: Mapping[str, str] | None = None) -> None:
        """Re-run provider and model selection against issue/comment text.

        Explicit environment settings always win over text mentions. Retry
        and timeout limits are re-read when the provider changes.
        """
        env = os.environ if env is None else env
        previous = self.provider
        self.provider = select_provider(env, *texts)
        if not env.get("GEMINI_MODEL"):
            self.gemini_model = _match_model(_GEMINI_MODEL_PATTERNS, texts, DEFAULT_GEMINI_MODEL)
        if not env.get("OPENAI_MODEL"):
            self.openai_model = _match_model(_OPENAI_MODEL_PATTERNS, texts, DEFAULT_OPENAI_MODEL)
        if self.provider != previous:
            for name, value in _provider_limits(env, self.provider).items():
                setattr(self, name, value)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> SolverConfig:
        """Build a config from environment variables.

        Raises:
            ValueError: If a numeric variable cannot be parsed.
        """
        env = os.environ if env is None else env
        comment = env.get("COMMENT_BODY", "")
        body = env.get("ISSUE_BODY", "")
        provider = select_provider(env, comment, body)

        return cls(
            issue_number=_int(env, "ISSUE_NUMBER", 0),
            repository=env.get("GITHUB_REPOSITORY", ""),
            github_token=env.get("GITHUB_TOKEN", ""),
            api_url=env.get("GITHUB_API_URL", "https://api.github.com"),
            issue_title=env.get("ISSUE_TITLE", ""),
            issue_body=body,
            issue_labels=_split_list(env.get("ISSUE_LABELS", "")),
            comment_body=comment,
            provider=provider,
            gemini_api_key=env.get("GEMINI_API_KEY", ""),
            openai_api_key=env.get("OPENAI_API_KEY", ""),
            gemini_model=env.get("GEMINI_MODEL")
            or _match_model(_GEMINI_MODEL_PATTERNS, (comment, body), DEFAULT_GEMINI_MODEL),
            openai_model=env.get("OPENAI_MODEL")
            or _match_model(_OPENAI_MODEL_PATTERNS, (comment, body), DEFAULT_OPENAI_MODEL),
            **_provider_limits(env, provider),
            execution_mode=ExecutionMode(env.get("EXECUTION_MODE", "auto").lower()),
            safety=SafetyPolicy(
                mode=SafetyMode(env.get("SAFETY_MODE", "normal").lower()),
                keep_backups=_flag(env, "KEEP_BACKUPS", False),
                coerce_actions=_flag(env, "COERCE_ACTIONS", True),
            ),
            dry_run=_flag(env, "DRY_RUN", False),
            target_files=_split_list(env.get("TARGET_FILES", "")),
            generate_report=_flag(env, "GENERATE_REPORT", False),
            run_tests=_flag(env, "RUN_TESTS", True),
            test_command=env.get("TEST_COMMAND", "npm test"),
            test_max_retries=_int(env, "TEST_MAX_RETRIES", 3),
            test_timeout=_int(env, "TEST_TIMEOUT", 300),
            base_branch=env.get("BASE_BRANCH", "main"),
        )


def select_provider(env: Mapping[str, str], *texts: str) -> AIProvider:
    """Pick the LLM backend: AI_PROVIDER, then @gpt/openai mentions, then Gemini."""
    explicit = env.get("AI_PROVIDER", "").strip().lower()
    if explicit:
        return AIProvider(explicit)
    for text in texts:
        if text and any(p.search(text) for p in _OPENAI_TRIGGERS):
            return AIProvider.OPENAI
    return AIProvider.GEMINI


def _provider_limits(env: Mapping[str, str], provider: AIProvider) -> dict[str, int | float]:
    """Read <PROVIDER>_MAX_RETRIES, _RETRY_DELAY (ms) and _TIMEOUT (ms)."""
    prefix = provider.value.upper()
    return {
        "max_retries": _int(env, f"{prefix}_MAX_RETRIES", 3),
        "retry_delay": _int(env, f"{prefix}_RETRY_DELAY", 2000) / 1000,
        "timeout": _int(env, f"{prefix}_TIMEOUT", 3_600_000) / 1000,
    }


def _match_model(
    patterns: list[tuple[re.Pattern[str], str]],
    texts: tuple[str, ...],
    default: str,
) -> str:
    for text in texts:
        if not text:
            continue
        for pattern, model in patterns:
            if pattern.search(text):
                return model
    return default


def _flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() == "true"


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "")
    if not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _split_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]
