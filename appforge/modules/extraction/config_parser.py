"""
Config Parser
Infers a ProjectConfiguration from the JSON object an AI response embeds.

The generator is asked to return a JSON block such as:
    {"type": "fullstack", "language": "typescript", "frontend": {...}, ...}

Anything malformed falls back to the default configuration; this never raises.
"""

import json
import re
from typing import Any, Dict, Optional

from pydantic import ValidationError

from appforge.core.config import settings
from appforge.core.logging_config import logger
from appforge.schemas.project import ProjectConfiguration


DEFAULT_DESCRIPTION = "Web application generated from prompt"

_TYPE_KEY = re.compile(r'"type"\s*:\s*"(?:frontend|backend|fullstack)"')


def is_config_block(text: str) -> bool:
    """True for a code block holding only the embedded project configuration"""
    stripped = text.strip()
    return stripped.startswith("{") and bool(_TYPE_KEY.search(stripped))


def default_config_dict() -> Dict[str, Any]:
    return {
        "type": "frontend",
        "language": "typescript",
        "frontend": {"framework": "react", "styling": "tailwind", "features": []},
        "name": settings.DEFAULT_PROJECT_NAME,
        "description": DEFAULT_DESCRIPTION,
    }


class ConfigParser:
    """Finds, validates and merges a project configuration out of free text"""

    def extract_config(self, text: Optional[str]) -> ProjectConfiguration:
        """
        Find the first JSON object with a recognized "type" key.

        Returns the default configuration when none is found, braces are
        unbalanced, the JSON does not parse, or "type"/"language" is missing.
        """
        if not text:
            return self.default()

        key = _TYPE_KEY.search(text)
        if not key:
            logger.debug("[ConfigParser] No configuration object found, using defaults")
            return self.default()

        candidate = self._enclosing_object(text, key.start())
        if candidate is None:
            logger.warning("[ConfigParser] Unbalanced braces in config JSON, using default config")
            return self.default()

        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as e:
            logger.warning(f"[ConfigParser] Error parsing JSON config: {e}")
            return self.default()

        if not isinstance(parsed, dict) or not parsed.get("type") or not parsed.get("language"):
            logger.warning("[ConfigParser] Config is missing 'type' or 'language', using default config")
            return self.default()

        return self.resolve_config(parsed)

    def resolve_config(self, partial: Optional[Dict[str, Any]]) -> ProjectConfiguration:
        """Deep-merge a partial configuration over the defaults"""
        merged = default_config_dict()
        partial = dict(partial or {})

        for key, value in partial.items():
            if key in ("frontend", "backend"):
                continue
            if value is not None:
                merged[key] = value

        project_type = str(merged.get("type", "frontend")).lower()
        if project_type in ("frontend", "fullstack"):
            merged["frontend"] = {**merged["frontend"], **self._block(partial.get("frontend"))}
        else:
            merged.pop("frontend", None)
        if partial.get("backend") or project_type in ("backend", "fullstack"):
            merged["backend"] = self._block(partial.get("backend"))

        merged["name"] = partial.get("name") or settings.DEFAULT_PROJECT_NAME

        try:
            return ProjectConfiguration.model_validate(merged)
        except ValidationError as e:
            logger.warning(f"[ConfigParser] Invalid configuration ({e.error_count()} error(s)), using default config")
            return self.default()

    @staticmethod
    def default() -> ProjectConfiguration:
        return ProjectConfiguration.model_validate(default_config_dict())

    @staticmethod
    def _block(value: Any) -> Dict[str, Any]:
        if isinstance(value, dict):
            return {k: v for k, v in value.items() if v is not None}
        return {}

    @classmethod
    def _enclosing_object(cls, text: str, key_start: int) -> Optional[str]:
        """Innermost balanced {...} around the "type" key, or None"""
        openings = [m.start() for m in re.finditer(r"\{", text[:key_start])]
        for start in reversed(openings):
            candidate = cls._complete_object(text, start)
            if candidate is None:
                # An outer object cannot close if an inner one never does
                return None
            if start + len(candidate) > key_start:
                return candidate
        return None

    @staticmethod
    def _complete_object(text: str, start: int) -> Optional[str]:
        """Slice from `start` to its matching closing brace; None if it never closes"""
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:index + 1]
        return None


# Singleton instance
config_parser = ConfigParser()
