from appforge.schemas.project import (
    ProjectConfiguration,
    FrontendConfig,
    BackendConfig,
    slugify_project_name,
)
from appforge.schemas.session import (
    RawFileSet,
    OrganizedFileSet,
    ScaffoldSession,
    GenerationResult,
    MaterializationStatus,
    MaterializationResult,
    ProjectCreationNotice,
)

__all__ = [
    "ProjectConfiguration",
    "FrontendConfig",
    "BackendConfig",
    "slugify_project_name",
    "RawFileSet",
    "OrganizedFileSet",
    "ScaffoldSession",
    "GenerationResult",
    "MaterializationStatus",
    "MaterializationResult",
    "ProjectCreationNotice",
]
