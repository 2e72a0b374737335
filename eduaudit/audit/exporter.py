"""
Audit Exporters — publish an audit as an artifact outside the database.

Best-effort side feature: an export failure raises ExportFailed and never
touches the stored audit. Backends:
- FileSystemExporter: ``<directory>/audit-<id>.md``
- GitExporter: same file, committed (and optionally pushed) with GitPython
"""

import asyncio
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

import structlog

from eduaudit.errors import ExportFailed

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ArtifactLocation:
    path: str
    revision: Optional[str] = None


class AuditExporter(Protocol):
    async def export(self, audit_id: int, content: str) -> ArtifactLocation:
        ...


def artifact_name(audit_id: int) -> str:
    return f"audit-{audit_id}.md"


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content if content.endswith("\n") else content + "\n", encoding="utf-8")


class FileSystemExporter:
    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    async def export(self, audit_id: int, content: str) -> ArtifactLocation:
        path = self.directory / artifact_name(audit_id)
        try:
            await asyncio.to_thread(_write, path, content)
        except OSError as e:
            logger.error("audit_export_failed", backend="filesystem", audit_id=audit_id, error=str(e))
            raise ExportFailed(f"Could not write {path}: {e}") from e
        logger.info("audit_exported", backend="filesystem", audit_id=audit_id, path=str(path))
        return ArtifactLocation(path=str(path))


class GitExporter:
    """
    Commit audits into a git working tree.

    GitPython is imported lazily: it needs a git executable at import time
    and only this backend uses it. One commit runs at a time: the index and
    HEAD of a working tree cannot be shared between threads. The Repo is
    opened and closed per export so no ``git cat-file`` helper outlives a
    timed-out call.
    """

    def __init__(
        self,
        repo_path: str | Path,
        subdirectory: str = "audits",
        push: bool = False,
        remote: str = "origin",
        timeout: float = 30.0,
    ):
        self.repo_path = Path(repo_path)
        self.subdirectory = subdirectory
        self.push = push
        self.remote = remote
        self.timeout = timeout
        self._lock = threading.Lock()

    def _commit(self, audit_id: int, content: str) -> ArtifactLocation:
        import git

        # Waiting threads give up on their own instead of committing late
        if not self._lock.acquire(timeout=self.timeout):
            raise TimeoutError("another git export is still running")
        try:
            with git.Repo(self.repo_path) as repo:
                relative = Path(self.subdirectory) / artifact_name(audit_id)
                _write(self.repo_path / relative, content)

                repo.index.add([str(relative)])
                commit = repo.index.commit(f"Publish automation audit {audit_id}")
                if self.push:
                    repo.remote(self.remote).push(kill_after_timeout=self.timeout)
                return ArtifactLocation(path=str(relative), revision=commit.hexsha)
        finally:
            self._lock.release()

    async def export(self, audit_id: int, content: str) -> ArtifactLocation:
        try:
            location = await asyncio.wait_for(
                asyncio.to_thread(self._commit, audit_id, content),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("audit_export_timeout", backend="git", audit_id=audit_id)
            raise ExportFailed(f"git export timed out after {self.timeout}s") from e
        except Exception as e:
            logger.error("audit_export_failed", backend="git", audit_id=audit_id, error=str(e))
            raise ExportFailed(f"git export failed: {e}") from e

        logger.info(
            "audit_exported",
            backend="git",
            audit_id=audit_id,
            path=location.path,
            revision=location.revision,
            pushed=self.push,
        )
        return location
