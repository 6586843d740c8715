"""End-to-end orchestration of one issue solve.

starting -> analyzing -> planning -> implementing -> testing (retrying)
-> reporting -> completed, or error from any phase. Every failure is
reported on the status comment and re-raised to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from issuesolver.apply.errors import VerificationError
from issuesolver.apply.git import GitPublisher, branch_name
from issuesolver.apply.transaction import TransactionCoordinator
from issuesolver.apply.verify import TestRunner
from issuesolver.github.client import GitHubClient
from issuesolver.github.issue import IssueFetcher
from issuesolver.github.status import StatusCommentManager, StatusPhase
from issuesolver.output.report import (
    build_error_report,
    commit_message,
    pull_request_body,
    pull_request_title,
    solution_documentation,
    write_error_report,
    write_report,
)
from issuesolver.providers.base import SolutionProvider
from issuesolver.providers.litellm_provider import LiteLLMProvider
from issuesolver.schemas.config import ExecutionMode, SolverConfig
from issuesolver.schemas.issue import IssueContext
from issuesolver.schemas.report import PipelineResult, SolutionReport
from issuesolver.schemas.solution import Solution
from issuesolver.solver.solver import IssueSolver

logger = logging.getLogger(__name__)

# Characters of test output fed back to the solver on a retry
MAX_TEST_FEEDBACK_CHARS = 4000


class IssueSolverPipeline:
    """Runs fetch, solve, apply, test, report, and publish for one issue."""

    def __init__(
        self,
        config: SolverConfig,
        repo_dir: Path,
        *,
        provider: SolutionProvider | None = None,
        client: GitHubClient | None = None,
        publisher: GitPublisher | None = None,
        output_dir: Path | None = None,
    ) -> None:
        self._config = config
        self._repo_dir = Path(repo_dir).resolve()
        self._provider = provider
        self._client = client
        self._publisher = publisher or GitPublisher(self._repo_dir)
        self._output_dir = Path(output_dir) if output_dir else self._repo_dir
        self._status = StatusCommentManager(client, config.issue_number)
        self._issue: IssueContext | None = None

    @property
    def status(self) -> StatusCommentManager:
        return self._status

    async def run(self) -> PipelineResult:
        """Solve the configured issue.

        Raises:
            IssueSolverError: On any unrecoverable failure, after the error
                status and error report have been written.
        """
        result = PipelineResult(issue_number=self._config.issue_number)
        await self._status.update(StatusPhase.STARTING)
        try:
            await self._run(result)
        except Exception as e:
            logger.error("Issue solve failed: %s", e)
            await self._status.update(
                StatusPhase.ERROR, str(e), {"Error type": type(e).__name__},
            )
            title = self._issue.title if self._issue else self._config.issue_title
            write_error_report(
                build_error_report(self._config.issue_number, title, e), self._output_dir,
            )
            raise
        return result

    async def _run(self, result: PipelineResult) -> None:
        config = self._config

        await self._status.update(StatusPhase.ANALYZING)
        issue = await IssueFetcher(config, self._client).fetch()
        self._issue = issue
        solver = IssueSolver(
            self._resolve_provider(issue),
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            timeout=config.timeout,
        )
        file_contents = self.read_target_files()

        test_output = ""
        max_attempts = config.test_max_retries if config.run_tests and not config.dry_run else 1
        for attempt in range(1, max_attempts + 1):
            if attempt == 1:
                await self._status.update(StatusPhase.PLANNING)
            else:
                await self._status.update(
                    StatusPhase.RETRYING,
                    f"Tests failed; new solution attempt {attempt}/{max_attempts}",
                )

            solution = await solver.solve(
                issue,
                file_contents=file_contents,
                test_output=test_output[-MAX_TEST_FEEDBACK_CHARS:],
                test_command=config.test_command if test_output else "",
            )
            if config.execution_mode == ExecutionMode.DETAILED and not solution.files:
                logger.info("No file changes proposed; writing solution documentation")
                solution = solution.model_copy(update={"files": [solution_documentation(solution, issue)]})
            result.solution = solution

            await self._status.update(
                StatusPhase.IMPLEMENTING,
                details={"Files": str(len(solution.files)), "Confidence": str(solution.confidence)},
            )
            coordinator = TransactionCoordinator(self._repo_dir, config.safety)
            if config.dry_run:
                result.dry_run = coordinator.dry_run(solution.files)
                break
            result.records.extend(coordinator.run(solution.files))

            if not config.run_tests:
                break

            await self._status.update(StatusPhase.TESTING, f"Running `{config.test_command}`")
            runner = TestRunner(self._repo_dir, config.test_command, timeout=config.test_timeout)
            loop = asyncio.get_running_loop()
            test = await loop.run_in_executor(None, runner.run)
            result.test_attempts += 1
            result.test_passed = test.passed
            if test.passed:
                break
            test_output = test.output or f"Test command exited with code {test.returncode}"
            if attempt == max_attempts:
                raise VerificationError(result.test_attempts, test.output)

        await self._status.update(StatusPhase.REPORTING)
        if config.generate_report:
            report = SolutionReport(
                issue_number=issue.number,
                issue_title=issue.title,
                issue=issue,
                solution=result.solution,
                records=result.records,
                dry_run=result.dry_run,
                test_passed=result.test_passed,
                test_attempts=result.test_attempts,
                model=solver_model(self._provider),
            )
            result.report_path = str(write_report(report, self._output_dir))

        if config.dry_run:
            await self._status.update(
                StatusPhase.COMPLETED, "Dry run finished; no files were changed",
            )
            return

        await self._publish(result, issue)

    async def _publish(self, result: PipelineResult, issue: IssueContext) -> None:
        paths = result.touched_paths
        if not paths or not self._publisher.is_repo() or not self._publisher.has_changes():
            logger.info("No changes to publish")
            await self._status.update(StatusPhase.COMPLETED, "No file changes were needed")
            return
        if self._client is None:
            logger.info("No GitHub client configured; leaving changes uncommitted")
            await self._status.update(StatusPhase.COMPLETED, "Changes applied locally")
            return

        solution = result.solution or Solution()
        branch = branch_name(issue.number)
        self._publisher.ensure_identity()
        self._publisher.create_branch(branch)
        result.commit_sha = self._publisher.commit_paths(paths, commit_message(solution, issue))
        self._publisher.push(branch)
        result.branch = branch

        pr = await self._client.create_pull_request(
            title=pull_request_title(issue),
            head=branch,
            base=self._config.base_branch,
            body=pull_request_body(
                solution, issue,
                model=solver_model(self._provider),
                test_passed=result.test_passed,
            ),
        )
        result.pr_url = (pr or {}).get("html_url", "")
        await self._status.update(
            StatusPhase.COMPLETED,
            "Pull request created",
            {"Pull request": result.pr_url or branch, "Files changed": str(len(paths))},
        )

    def _resolve_provider(self, issue: IssueContext) -> SolutionProvider:
        """Pick provider and model from the fetched issue unless one was injected.

        Raises:
            ValueError: If the selected provider has no API key.
        """
        if self._provider is None:
            self._config.select_from_text(issue.latest_request, issue.body)
            self._config.validate_required()
            self._provider = LiteLLMProvider.from_config(self._config)
            logger.info("Using %s", self._provider.model_id)
        return self._provider

    def read_target_files(self) -> dict[str, str]:
        """Contents of TARGET_FILES under the repo, for prompt context.

        Missing, unreadable, or out-of-tree entries are skipped.
        """
        contents: dict[str, str] = {}
        for rel in self._config.target_files:
            path = (self._repo_dir / rel).resolve()
            if not path.is_relative_to(self._repo_dir) or not path.is_file():
                logger.warning("Target file not found or outside the repository: %s", rel)
                continue
            try:
                contents[rel] = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Could not read target file %s: %s", rel, e)
        return contents


def solver_model(provider: SolutionProvider | None) -> str:
    return provider.model_id if provider is not None else ""
