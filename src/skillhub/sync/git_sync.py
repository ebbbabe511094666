"""Git working-copy synchronization for the remote skills repository.

All git calls go through _run_git(), which is the single mock target in tests.
The working copy is disposable: updates are applied with a hard reset.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from skillhub.errors import RepositoryError
from skillhub.skills.models import SyncResult

logger = logging.getLogger(__name__)

CLONE_TIMEOUT = 120
FETCH_TIMEOUT = 60


def _run_git(
    args: list[str],
    *,
    cwd: str | Path | None = None,
    timeout: float = FETCH_TIMEOUT,
) -> subprocess.CompletedProcess[str]:
    """Run a git command, raising RepositoryError on a missing binary or timeout."""
    try:
        return subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
        )
    except FileNotFoundError:
        raise RepositoryError("git binary not found")
    except subprocess.TimeoutExpired:
        raise RepositoryError(f"git {args[0]} timed out after {timeout}s")


def _check(result: subprocess.CompletedProcess[str], action: str) -> str:
    if result.returncode != 0:
        detail = result.stderr.strip() or result.stdout.strip() or f"exit {result.returncode}"
        raise RepositoryError(f"git {action} failed: {detail}")
    return result.stdout.strip()


class GitSyncService:
    def __init__(
        self,
        repo_dir: Path,
        repo_url: str,
        branch: str = "main",
        *,
        clone_timeout: float = CLONE_TIMEOUT,
        fetch_timeout: float = FETCH_TIMEOUT,
    ) -> None:
        self._repo_dir = repo_dir
        self._repo_url = repo_url
        self._branch = branch
        self._clone_timeout = clone_timeout
        self._fetch_timeout = fetch_timeout
        # Shared by scheduled ticks and manual refreshes
        self._gate = threading.RLock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def repo_dir(self) -> Path:
        return self._repo_dir

    def has_working_copy(self) -> bool:
        return (self._repo_dir / ".git").exists()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold the sync gate; scheduled ticks are skipped while it is held."""
        with self._gate:
            yield

    def initialize(self) -> SyncResult:
        """Clone when the working copy is absent, otherwise sync it."""
        if self.has_working_copy():
            logger.info("Repository already exists, checking for updates...")
            return self.sync()

        with self._gate:
            logger.info(f"Cloning repository from {self._repo_url}...")
            existed = self._repo_dir.exists()
            self._repo_dir.parent.mkdir(parents=True, exist_ok=True)
            try:
                _check(
                    _run_git(
                        [
                            "clone",
                            "--depth",
                            "1",
                            "--single-branch",
                            "--branch",
                            self._branch,
                            self._repo_url,
                            str(self._repo_dir),
                        ],
                        timeout=self._clone_timeout,
                    ),
                    "clone",
                )
            except RepositoryError as e:
                logger.error(f"Failed to initialize repository: {e}")
                if not existed:
                    shutil.rmtree(self._repo_dir, ignore_errors=True)
                return SyncResult(success=False, message=f"Failed to initialize: {e}")

        logger.info("Repository cloned successfully")
        return SyncResult(
            success=True,
            updated=True,
            skills_changed=True,
            message="Repository cloned successfully",
        )

    def sync(self) -> SyncResult:
        """Fetch the branch and hard-reset to it when the remote head moved."""
        if not self.has_working_copy():
            return self.initialize()

        with self._gate:
            try:
                logger.debug("Fetching latest changes...")
                _check(
                    self._git(["fetch", "--depth", "1", "origin", self._branch]),
                    "fetch",
                )
                local_rev = _check(self._git(["rev-parse", "HEAD"]), "rev-parse")
                remote_rev = _check(
                    self._git(["rev-parse", f"origin/{self._branch}"]),
                    "rev-parse",
                )
                if local_rev == remote_rev:
                    logger.debug("Repository is up to date")
                    return SyncResult(success=True, message="Repository is up to date")

                logger.info(f"Updates found ({local_rev[:8]} -> {remote_rev[:8]}), resetting...")
                _check(
                    self._git(["reset", "--hard", f"origin/{self._branch}"]),
                    "reset",
                )
            except RepositoryError as e:
                logger.error(f"Failed to sync repository: {e}")
                return SyncResult(success=False, message=f"Sync failed: {e}")

        logger.info("Repository updated successfully")
        return SyncResult(
            success=True,
            updated=True,
            skills_changed=True,
            message="Repository updated successfully",
        )

    def last_commit_time(self) -> datetime | None:
        if not self.has_working_copy():
            return None
        try:
            stamp = _check(self._git(["log", "-1", "--format=%cI"]), "log")
        except RepositoryError as e:
            logger.error(f"Failed to get last commit time: {e}")
            return None
        try:
            return datetime.fromisoformat(stamp)
        except ValueError:
            return None

    # -- scheduling -----------------------------------------------------

    def run_scheduled_sync(self, on_update: Callable[[], None] | None = None) -> bool:
        """One scheduler tick. Returns False when skipped because a cycle is in flight."""
        if not self._gate.acquire(blocking=False):
            logger.debug("Skipping scheduled sync - previous sync still in progress")
            return False
        try:
            logger.debug("Running scheduled sync...")
            result = self.sync()
            if result.success and result.updated and on_update is not None:
                logger.info("Skills repository updated, triggering callback...")
                try:
                    on_update()
                except Exception:
                    logger.exception("Auto-sync callback failed")
        except Exception:
            logger.exception("Auto-sync failed")
        finally:
            self._gate.release()
        return True

    def start_auto_sync(
        self,
        interval_minutes: float,
        on_update: Callable[[], None] | None = None,
    ) -> None:
        if self._thread is not None and self._thread.is_alive() and not self._stop.is_set():
            return
        interval = interval_minutes * 60
        logger.info(f"Starting auto-sync every {interval_minutes} minutes")
        # Each loop owns its stop event; a loop still finishing a sync never restarts
        stop = threading.Event()
        self._stop = stop

        def _notify() -> None:
            if on_update is not None and not stop.is_set():
                on_update()

        def _loop() -> None:
            while not stop.wait(interval):
                self.run_scheduled_sync(_notify)

        self._thread = threading.Thread(target=_loop, name="skillhub-auto-sync", daemon=True)
        self._thread.start()

    def stop_auto_sync(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Auto-sync thread still finishing a sync; it will exit afterwards")
            self._thread = None

    def _git(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        return _run_git(args, cwd=self._repo_dir, timeout=self._fetch_timeout)
