"""
Local Materializer
Packages an organized file set into a downloadable zip when no live
execution endpoint is available.
"""

import io
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Union

import aiofiles

from appforge.core.config import settings
from appforge.core.exceptions import ArchiveFailedError
from appforge.core.logging_config import logger
from appforge.schemas.session import OrganizedFileSet, ProjectCreationNotice, ScaffoldSession


NoticeListener = Callable[[ProjectCreationNotice], None]


@dataclass
class ArchiveArtifact:
    path: Path
    project_name: str
    file_count: int
    size_bytes: int


class LocalMaterializer:
    """Writes {output_dir}/{project name}.zip and notifies listeners of the outcome"""

    def __init__(self, output_dir: Optional[Union[str, Path]] = None):
        self.output_dir = Path(output_dir) if output_dir else settings.archive_dir
        self._listeners: List[NoticeListener] = []

    def add_listener(self, listener: NoticeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: NoticeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @staticmethod
    def build_archive(files: OrganizedFileSet) -> bytes:
        """Zip every organized file at its final path"""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zipf:
            for path in sorted(files):
                zipf.writestr(path, files[path])
        return buffer.getvalue()

    async def materialize(self, session: ScaffoldSession) -> ArchiveArtifact:
        """
        Package the session's files.

        Raises:
            ArchiveFailedError: the archive could not be built or written
        """
        name = session.project_name
        archive_path = self.output_dir / f"{name}.zip"

        try:
            data = self.build_archive(session.files)
            self.output_dir.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(archive_path, "wb") as f:
                await f.write(data)
        except (OSError, ValueError, zipfile.LargeZipFile) as e:
            error = ArchiveFailedError(name, str(e))
            logger.error(f"[LocalMaterializer] {error.message}")
            self._notify(ProjectCreationNotice(
                success=False,
                message=f"Failed to create project '{name}'",
                project_name=name,
                error=error.message,
            ))
            raise error from e

        logger.info(f"[LocalMaterializer] Packaged {len(session.files)} file(s) into {archive_path}")
        self._notify(ProjectCreationNotice(
            success=True,
            message=f"Project '{name}' is ready to download",
            project_name=name,
            archive_path=str(archive_path),
        ))
        return ArchiveArtifact(
            path=archive_path,
            project_name=name,
            file_count=len(session.files),
            size_bytes=len(data),
        )

    def _notify(self, notice: ProjectCreationNotice) -> None:
        for listener in list(self._listeners):
            try:
                listener(notice)
            except Exception as e:
                logger.warning(f"[LocalMaterializer] Notice listener failed: {e}")
