"""
Layout Classifier
Relocates each extracted file into the conventional project directory layout.

Every decision is an ordered rule table evaluated top to bottom, first match
wins. The classifier is a pure function of (files, config): it performs no I/O
and never fails; every input produces exactly one output path.

Layout:
    {name}/                         root: docs, dotfiles, misc configs
    {name}/frontend/                frontend and fullstack projects
        src/  src/components/  src/pages/  public/
    {name}/backend/                 fullstack projects ({name}/ when backend-only)
        src/  src/routes/  src/controllers/  src/services/  src/models/
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from appforge.core.exceptions import ClassificationAmbiguousError, LayoutCollisionError
from appforge.core.logging_config import logger
from appforge.modules.extraction.file_extractor import normalize_path
from appforge.schemas.project import ProjectConfiguration
from appforge.schemas.session import OrganizedFileSet, RawFileSet


class Stack(str, Enum):
    FRONTEND = "frontend"
    BACKEND = "backend"


SOURCE_EXTENSIONS = (
    ".tsx", ".jsx", ".ts", ".js", ".mjs", ".cjs",
    ".css", ".scss", ".sass", ".less", ".html", ".vue", ".svelte",
)
FRONTEND_EXTENSIONS = (".css", ".scss", ".sass", ".less", ".html", ".tsx", ".jsx", ".vue", ".svelte")
BUILD_TOOL_CONFIGS = ("tsconfig", "tailwind", "postcss", "vite.config", "next.config")
ENTRY_STEMS = ("index", "app", "main")
UNNAMED_FILE = "untitled.txt"

BACKEND_NAME_MARKERS = ("route", "controller", "service", "model", "middleware", "server", "express")
FRONTEND_NAME_MARKERS = ("react", "component", "page", "screen")
BACKEND_CONTENT_MARKERS = ("express", "fastify", "koa", "app.listen(", "mongoose", "nestjs")
FRONTEND_CONTENT_MARKERS = ("React", "Component", "component", "className=", "render", "useState")
WEAK_FRONTEND_NAMES = ("app.", "index.")

PACKAGE_FRONTEND_MARKERS = ("react", "tailwind", '"next"', "vite")
PACKAGE_BACKEND_MARKERS = ("express", "nestjs", "fastify", '"koa"')


def _contains_any(haystack: str, needles: Tuple[str, ...]) -> bool:
    return any(needle in haystack for needle in needles)


@dataclass(frozen=True)
class OwnershipRule:
    """(lowercased file name, content) predicate attributing a file to a stack"""
    name: str
    stack: Stack
    predicate: Callable[[str, str], bool]

    def matches(self, file_name: str, content: str) -> bool:
        return self.predicate(file_name, content)


OWNERSHIP_RULES: Tuple[OwnershipRule, ...] = (
    OwnershipRule("frontend_extension", Stack.FRONTEND,
                  lambda name, _: name.endswith(FRONTEND_EXTENSIONS)),
    OwnershipRule("backend_name", Stack.BACKEND,
                  lambda name, _: _contains_any(name, BACKEND_NAME_MARKERS)),
    OwnershipRule("frontend_name", Stack.FRONTEND,
                  lambda name, _: _contains_any(name, FRONTEND_NAME_MARKERS)),
    OwnershipRule("backend_content", Stack.BACKEND,
                  lambda _, content: _contains_any(content, BACKEND_CONTENT_MARKERS)),
    OwnershipRule("frontend_content", Stack.FRONTEND,
                  lambda _, content: _contains_any(content, FRONTEND_CONTENT_MARKERS)),
    OwnershipRule("weak_entry_name", Stack.FRONTEND,
                  lambda name, _: name.startswith(WEAK_FRONTEND_NAMES)),
)

# (name marker, subdirectory under the backend src/)
BACKEND_PLACEMENT: Tuple[Tuple[str, str], ...] = (
    ("route", "src/routes"),
    ("controller", "src/controllers"),
    ("service", "src/services"),
    ("model", "src/models"),
)


def frontend_root(config: ProjectConfiguration) -> str:
    return f"{config.name}/frontend"


def backend_root(config: ProjectConfiguration) -> str:
    return f"{config.name}/backend" if config.is_fullstack else config.name


class LayoutClassifier:
    """
    Maps a RawFileSet onto an OrganizedFileSet.

    Keys are processed in sorted order so collisions resolve deterministically
    (the later raw path wins). With strict=True a collision raises
    LayoutCollisionError instead.
    """

    def __init__(
        self,
        ownership_rules: Tuple[OwnershipRule, ...] = OWNERSHIP_RULES,
        strict: bool = False
    ):
        self.ownership_rules = ownership_rules
        self.strict = strict

    def organize(self, files: RawFileSet, config: ProjectConfiguration) -> OrganizedFileSet:
        organized: OrganizedFileSet = {}
        sources: Dict[str, str] = {}

        for raw_path in sorted(files):
            content = files[raw_path]
            destination = self.destination(raw_path, content, config)

            if destination in organized:
                if self.strict:
                    raise LayoutCollisionError(destination, [sources[destination], raw_path])
                logger.warning(
                    f"[LayoutClassifier] '{sources[destination]}' and '{raw_path}' both map to "
                    f"'{destination}', keeping '{raw_path}'"
                )

            organized[destination] = content
            sources[destination] = raw_path

        logger.debug(f"[LayoutClassifier] Organized {len(files)} file(s) into {len(organized)} path(s)")
        return organized

    def destination(
        self,
        raw_path: str,
        content: str,
        config: ProjectConfiguration
    ) -> str:
        """Resolve the organized path for one raw file"""
        root = config.name
        raw_path = normalize_path(raw_path) or UNNAMED_FILE

        # Rule 1: explicit directory structure is preserved
        if "/" in raw_path:
            if raw_path.startswith(f"{root}/"):
                return raw_path
            return f"{root}/{raw_path}"

        name = raw_path.lower()

        # Rule 2: docs and dotfiles
        if name.startswith(".") or name.endswith(".md"):
            return f"{root}/{raw_path}"

        # Rule 3: configuration and manifests
        if "config" in name or name.endswith(".json"):
            return self._config_destination(raw_path, content, config)

        # Rule 4/5: source and markup
        if name.endswith(SOURCE_EXTENSIONS):
            return self._source_destination(raw_path, content, config)

        # Rule 6
        return f"{root}/{raw_path}"

    # ------------------------------------------------------------------
    # Rule helpers
    # ------------------------------------------------------------------

    def owner_of(self, file_name: str, content: str) -> Optional[Stack]:
        """First ownership rule that matches, or None for an unmarked file"""
        lowered = file_name.lower()
        for rule in self.ownership_rules:
            if rule.matches(lowered, content):
                return rule.stack
        return None

    def _config_destination(self, file_name: str, content: str, config: ProjectConfiguration) -> str:
        name = file_name.lower()

        if _contains_any(name, BUILD_TOOL_CONFIGS):
            if config.type == "backend":
                return f"{config.name}/{file_name}"
            return f"{frontend_root(config)}/{file_name}"

        if name == "package.json":
            if config.type == "backend":
                return f"{config.name}/{file_name}"
            if config.type == "frontend":
                return f"{frontend_root(config)}/{file_name}"
            try:
                stack = self._sniff_package_manifest(content)
            except ClassificationAmbiguousError as e:
                logger.debug(f"[LayoutClassifier] {e.message}, using frontend subtree")
                stack = Stack.FRONTEND
            root = frontend_root(config) if stack == Stack.FRONTEND else backend_root(config)
            return f"{root}/{file_name}"

        return f"{config.name}/{file_name}"

    @staticmethod
    def _sniff_package_manifest(content: str) -> Stack:
        is_frontend = _contains_any(content, PACKAGE_FRONTEND_MARKERS)
        is_backend = _contains_any(content, PACKAGE_BACKEND_MARKERS)
        if is_frontend and not is_backend:
            return Stack.FRONTEND
        if is_backend and not is_frontend:
            return Stack.BACKEND
        candidates: List[str] = [s.value for s, hit in ((Stack.FRONTEND, is_frontend), (Stack.BACKEND, is_backend)) if hit]
        raise ClassificationAmbiguousError("package.json", candidates)

    def _source_destination(self, file_name: str, content: str, config: ProjectConfiguration) -> str:
        owner = self.owner_of(file_name, content)

        if config.type == "frontend":
            if owner == Stack.FRONTEND:
                return self._frontend_path(file_name, config)
            return f"{frontend_root(config)}/src/{file_name}"

        if config.type == "backend":
            if owner == Stack.BACKEND:
                return self._backend_path(file_name, config)
            return f"{backend_root(config)}/src/{file_name}"

        if owner == Stack.FRONTEND:
            return self._frontend_path(file_name, config)
        return self._backend_path(file_name, config)

    @staticmethod
    def _frontend_path(file_name: str, config: ProjectConfiguration) -> str:
        name = file_name.lower()
        stem = name.split(".", 1)[0]
        base = frontend_root(config)

        if "component" in name:
            return f"{base}/src/components/{file_name}"
        if "page" in name or "screen" in name:
            return f"{base}/src/pages/{file_name}"
        if name.endswith(".html"):
            return f"{base}/public/{file_name}"
        if file_name[:1].isupper() and stem not in ENTRY_STEMS:
            return f"{base}/src/components/{file_name}"
        return f"{base}/src/{file_name}"

    @staticmethod
    def _backend_path(file_name: str, config: ProjectConfiguration) -> str:
        name = file_name.lower()
        base = backend_root(config)
        for marker, subdir in BACKEND_PLACEMENT:
            if marker in name:
                return f"{base}/{subdir}/{file_name}"
        return f"{base}/src/{file_name}"


# Singleton instance
layout_classifier = LayoutClassifier()


def organize(files: RawFileSet, config: ProjectConfiguration) -> OrganizedFileSet:
    return layout_classifier.organize(files, config)
