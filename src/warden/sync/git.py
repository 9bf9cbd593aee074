"""Git operations scoped to the managed config file.

Every failure is reported through GitOperationResult and logged as a warning;
nothing here raises for a git error, so a broken repository never blocks a
config sync.
"""

from __future__ import annotations

import logging
import subprocess  # nosec B404 - subprocess needed for git commands
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class GitOperationResult:
    """Result of a git operation."""

    success: bool
    message: str
    output: str | None = None
    error: str | None = None


class GitRepo:
    """
    Git repository holding the managed config copy.

    Only ever stages and commits the single file it is asked about, so other
    files in the working tree are never swept into a sync commit.
    """

    def __init__(self, repo_path: str | Path, timeout: float = 30.0):
        self.repo_path = Path(repo_path)
        self.timeout = timeout

    def _run_git(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        return subprocess.run(  # nosec B603 B607 - hardcoded git command
            ["git", *args],
            cwd=self.repo_path,
            capture_output=True,
            text=True,
            timeout=self.timeout,
        )

    def is_repo(self) -> bool:
        return (self.repo_path / ".git").exists()

    def ensure_repo(self, auto_init: bool) -> bool:
        """
        Make sure repo_path is a git repository.

        Args:
            auto_init: Run `git init` when it is not one yet

        Returns:
            True if the repository is ready for commits
        """
        if self.is_repo():
            return True
        if not auto_init:
            logger.debug(f"{self.repo_path} is not a git repository and autoInit is off")
            return False
        try:
            result = self._run_git(["init"])
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"git init failed: {e}")
            return False
        if result.returncode != 0:
            logger.warning(f"git init failed: {result.stderr.strip()}")
            return False
        logger.info(f"Initialized git repository in {self.repo_path}")
        return True

    def has_changes(self, file_path: Path) -> bool | None:
        """
        Check whether file_path differs from the last commit.

        Returns:
            True/False, or None when git status itself failed
        """
        rel_path = self._relative(file_path)
        try:
            result = self._run_git(["status", "--porcelain", "--", rel_path])
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"git status failed: {e}")
            return None
        if result.returncode != 0:
            logger.warning(f"git status failed: {result.stderr.strip()}")
            return None
        return bool(result.stdout.strip())

    def commit_file_if_changed(self, file_path: Path, message: str) -> GitOperationResult:
        """
        Stage and commit file_path, but only when it changed.

        Args:
            file_path: File inside the repository
            message: Commit message

        Returns:
            GitOperationResult; success=True with message "unchanged" when
            there was nothing to commit
        """
        changed = self.has_changes(file_path)
        if changed is None:
            return GitOperationResult(success=False, message="git status failed")
        if not changed:
            return GitOperationResult(success=True, message="unchanged")

        rel_path = self._relative(file_path)
        try:
            add = self._run_git(["add", "--", rel_path])
            if add.returncode != 0:
                logger.warning(f"git add failed: {add.stderr.strip()}")
                return GitOperationResult(
                    success=False, message="git add failed", error=add.stderr.strip()
                )

            commit = self._run_git(["commit", "-m", message, "--", rel_path])
            if commit.returncode != 0:
                logger.warning(f"git commit failed: {commit.stderr.strip() or commit.stdout.strip()}")
                return GitOperationResult(
                    success=False,
                    message="git commit failed",
                    output=commit.stdout,
                    error=commit.stderr.strip(),
                )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"git commit failed: {e}")
            return GitOperationResult(success=False, message="git commit failed", error=str(e))

        logger.info(f"Committed {rel_path}: {message}")
        return GitOperationResult(success=True, message="committed", output=commit.stdout)

    def _relative(self, file_path: Path) -> str:
        try:
            return str(file_path.resolve().relative_to(self.repo_path.resolve()))
        except ValueError:
            return str(file_path)
