import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from appforge.schemas.project import ProjectConfiguration


# relative path -> raw content, as extracted from generated text
RawFileSet = Dict[str, str]
# project-root-prefixed path -> content, after layout classification
OrganizedFileSet = Dict[str, str]


def new_session_id() -> str:
    return f"session-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class ScaffoldSession:
    """One end-to-end attempt to turn a configuration + file set into a project"""
    session_id: str
    config: ProjectConfiguration
    files: OrganizedFileSet = field(default_factory=dict)

    @classmethod
    def create(cls, config: ProjectConfiguration, files: Optional[OrganizedFileSet] = None) -> "ScaffoldSession":
        return cls(session_id=new_session_id(), config=config, files=dict(files or {}))

    def with_files(self, files: OrganizedFileSet) -> "ScaffoldSession":
        """Replace the file set wholesale (e.g. after re-organization)"""
        return replace(self, files=dict(files))

    @property
    def project_name(self) -> str:
        return self.config.name


@dataclass
class GenerationResult:
    """Output of the AI text collaborator"""
    text: str = ""
    code: Optional[str] = None
    config: Optional[ProjectConfiguration] = None
    mermaid_code: Optional[str] = None
    error: Optional[str] = None


class MaterializationStatus(str, Enum):
    LIVE = "live"            # scaffolded through the execution endpoint
    ARCHIVED = "archived"    # degraded: packaged as a downloadable archive
    FAILED = "failed"


@dataclass
class ProjectCreationNotice:
    """Payload delivered to notification listeners when a session finishes"""
    success: bool
    message: str
    project_name: str
    archive_path: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "project_name": self.project_name,
            "archive_path": self.archive_path,
            "error": self.error,
        }


@dataclass
class MaterializationResult:
    status: MaterializationStatus
    session_id: str
    project_name: str
    archive_path: Optional[str] = None
    responses: List[Any] = field(default_factory=list)
    error: Optional[Dict[str, Any]] = None

    @property
    def success(self) -> bool:
        return self.status != MaterializationStatus.FAILED
