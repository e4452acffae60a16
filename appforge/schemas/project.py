import re
from typing import Any, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from appforge.core.config import settings
from appforge.core.logging_config import logger


ProjectType = Literal["frontend", "backend", "fullstack"]
Language = Literal["javascript", "typescript"]

PROJECT_TYPES = ("frontend", "backend", "fullstack")
LANGUAGES = ("javascript", "typescript")
LANGUAGE_ALIASES = {"js": "javascript", "ts": "typescript"}

_NAME_INVALID_CHARS = re.compile(r"[^a-z0-9._-]+")
_REPEATED_DASHES = re.compile(r"-{2,}")


def _drop_nulls(data: Any) -> Any:
    if isinstance(data, dict):
        return {k: v for k, v in data.items() if v is not None}
    return data


def slugify_project_name(name: Any) -> str:
    """Normalize a project name into a lowercase, shell-safe directory name"""
    slug = _NAME_INVALID_CHARS.sub("-", str(name or "").strip().lower())
    slug = _REPEATED_DASHES.sub("-", slug).strip("-.")
    return slug or settings.DEFAULT_PROJECT_NAME


class FrontendConfig(BaseModel):
    framework: str = "react"
    styling: str = "tailwind"
    features: Tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        return _drop_nulls(data)

    @field_validator("framework", "styling", mode="before")
    @classmethod
    def normalize_token(cls, v: Any) -> str:
        return str(v).strip().lower()

    @field_validator("features", mode="before")
    @classmethod
    def dedupe_features(cls, v: Any) -> Tuple[str, ...]:
        """Feature tags form an ordered set: first occurrence wins"""
        if isinstance(v, str):
            v = re.split(r"[,\s]+", v)
        seen = []
        for tag in v or ():
            tag = str(tag).strip()
            if tag and tag not in seen:
                seen.append(tag)
        return tuple(seen)


class BackendConfig(BaseModel):
    framework: str = "express"
    database: str = "none"

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        return _drop_nulls(data)

    @field_validator("framework", "database", mode="before")
    @classmethod
    def normalize_token(cls, v: Any) -> str:
        return str(v).strip().lower()


class ProjectConfiguration(BaseModel):
    """
    Immutable description of the project to scaffold.

    Upstream text generators routinely omit or misspell fields, so validation
    coerces instead of rejecting: unknown type/language fall back to defaults,
    the name becomes a safe slug, and stack blocks required by the type are
    filled in.
    """

    type: ProjectType = "frontend"
    language: Language = "typescript"
    frontend: Optional[FrontendConfig] = None
    backend: Optional[BackendConfig] = None
    name: str = Field(default_factory=lambda: settings.DEFAULT_PROJECT_NAME)
    description: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def coerce_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = _drop_nulls(dict(data))

        project_type = str(data.get("type", "frontend")).strip().lower()
        if project_type not in PROJECT_TYPES:
            logger.warning(f"[ProjectConfiguration] Unknown project type '{project_type}', using 'frontend'")
            project_type = "frontend"
        data["type"] = project_type

        language = str(data.get("language", "typescript")).strip().lower()
        language = LANGUAGE_ALIASES.get(language, language)
        if language not in LANGUAGES:
            logger.warning(f"[ProjectConfiguration] Unknown language '{language}', using 'typescript'")
            language = "typescript"
        data["language"] = language

        data["name"] = slugify_project_name(data.get("name"))

        if project_type in ("frontend", "fullstack") and not data.get("frontend"):
            data["frontend"] = {}
        if project_type in ("backend", "fullstack") and not data.get("backend"):
            data["backend"] = {}
        return data

    @property
    def has_frontend(self) -> bool:
        return self.type in ("frontend", "fullstack")

    @property
    def has_backend(self) -> bool:
        return self.type in ("backend", "fullstack")

    @property
    def is_fullstack(self) -> bool:
        return self.type == "fullstack"

    @property
    def is_typescript(self) -> bool:
        return self.language == "typescript"
