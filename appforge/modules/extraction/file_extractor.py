"""
File Extractor
Splits one blob of AI-generated text into a mapping of relative path -> content.

Passes, in priority order (a later pass never overwrites an earlier one):
1. Path comments     // src/App.tsx  followed by the file body
2. Fenced blocks     ```tsx:src/App.tsx, a name on the first line, or a
                     bare path on the line above the fence
3. Content sniffing  unnamed blocks matched against CONTENT_RULES

A synthetic README.md is always added from the prose portion of the input.
"""

import posixpath
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from appforge.core.exceptions import ExtractionEmptyError
from appforge.core.logging_config import logger
from appforge.schemas.session import RawFileSet


PLACEHOLDER_README = "# Generated Project\n\nNo content was generated."
README_NAME = "README.md"

# A bare path token: no whitespace or quotes, ending in ".<alnum extension>"
PATH_TOKEN = r"[^\s'\"`<>*:|]*[^\s'\"`<>*:|.]\.[A-Za-z0-9]+"

_WRAP = r"[`*]*"
_PATH_COMMENT_PATTERNS = (
    re.compile(rf"^\s*(?://+|#+)\s*(?:File(?:name)?:\s*)?{_WRAP}(?P<path>{PATH_TOKEN}){_WRAP}\s*:?\s*$", re.IGNORECASE),
    re.compile(rf"^\s*/\*+\s*{_WRAP}(?P<path>{PATH_TOKEN}){_WRAP}\s*\*+/\s*$"),
    re.compile(rf"^\s*<!--\s*{_WRAP}(?P<path>{PATH_TOKEN}){_WRAP}\s*-->\s*$"),
)

# "**src/App.tsx**", "`src/App.tsx`:", "File: src/App.tsx", "- src/App.tsx"
_BARE_PATH_LINE = re.compile(
    rf"^\s*(?:[-*]\s+|\d+\.\s+)?(?:File(?:name)?:\s*)?[`*\"']*(?P<path>{PATH_TOKEN})[`*\"']*\s*:?\s*$",
    re.IGNORECASE,
)

_FENCE = re.compile(r"^\s*```(?P<info>[^`]*)$")
_INFO_ATTR = re.compile(r"(?:title|filename|file|path)=[\"']?(?P<path>[^\"'\s]+)", re.IGNORECASE)
_INFO_PATH = re.compile(rf"^(?P<path>{PATH_TOKEN})$")


@dataclass(frozen=True)
class ContentRule:
    """Maps a code block whose content contains any marker onto a canonical path"""
    path: str
    markers: Tuple[str, ...]

    def matches(self, content: str) -> bool:
        return any(marker in content for marker in self.markers)


# Evaluated top to bottom, first match wins per block
CONTENT_RULES: Tuple[ContentRule, ...] = (
    ContentRule("tsconfig.json", ('"compilerOptions"',)),
    ContentRule("package.json", ('"dependencies"', '"devDependencies"', '"scripts"')),
    ContentRule("tailwind.config.js", ("tailwind.config", "import('tailwindcss')", 'import("tailwindcss")')),
    ContentRule("src/index.tsx", ("ReactDOM.createRoot", "ReactDOM.render", "createRoot(")),
    ContentRule("src/App.tsx", ("import React", "from 'react'", 'from "react"')),
    ContentRule("src/index.css", ("@tailwind base", '@import "tailwindcss"', "@import 'tailwindcss'")),
    ContentRule("public/index.html", ("<!DOCTYPE html>", "<!doctype html>")),
    ContentRule("src/index.ts", ("express", "fastify", "koa")),
)


@dataclass
class FencedBlock:
    info: str
    lines: List[str] = field(default_factory=list)
    preceding: str = ""

    @property
    def body(self) -> str:
        return "\n".join(self.lines)


def match_path_comment(line: str) -> Optional[str]:
    """Return the path named by a comment line, or None"""
    for pattern in _PATH_COMMENT_PATTERNS:
        match = pattern.match(line)
        if match:
            return normalize_path(match.group("path"))
    return None


def normalize_path(path: str) -> str:
    """Relative POSIX path with '.', '..' and empty parts resolved"""
    path = path.strip().strip("`*\"'").replace("\\", "/")
    if not path:
        return ""
    # anchored at "/" so ".." can never climb above the project root
    return posixpath.normpath("/" + path).lstrip("/")


def _is_opening_fence(line: str) -> bool:
    return bool(_FENCE.match(line))


def _is_closing_fence(line: str) -> bool:
    match = _FENCE.match(line)
    return bool(match) and not match.group("info").strip()


class FileExtractor:
    """Extracts a RawFileSet from generated text using ordered extraction passes"""

    def __init__(self, content_rules: Tuple[ContentRule, ...] = CONTENT_RULES):
        self.content_rules = content_rules

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract(self, text: Optional[str], prose: Optional[str] = None) -> RawFileSet:
        """
        Extract files plus a synthetic README.md.

        Args:
            text: Generated text (code blob or full response)
            prose: Explanatory text to use for README.md; derived from `text`
                when omitted

        Returns:
            RawFileSet, never empty
        """
        files: RawFileSet = {README_NAME: self.synthesize_readme(text, prose)}
        # An extracted README.md is more specific than the synthetic one
        files.update(self.extract_files(text))
        return files

    def extract_files(self, text: Optional[str]) -> RawFileSet:
        """Extract only the files named or recognized in `text`"""
        try:
            return self._run_passes(text or "")
        except ExtractionEmptyError as e:
            logger.warning(f"[FileExtractor] {e.message}, falling back to README only")
            return {}

    def synthesize_readme(self, text: Optional[str], prose: Optional[str] = None) -> str:
        if prose and prose.strip():
            return prose.strip()
        if not text or not text.strip():
            return PLACEHOLDER_README

        stripped = self.strip_code(text)
        if stripped:
            return stripped

        first_paragraph = text.strip().split("\n\n")[0].strip()
        if (
            first_paragraph
            and "```" not in first_paragraph
            and match_path_comment(first_paragraph.splitlines()[0]) is None
        ):
            return first_paragraph
        return PLACEHOLDER_README

    @staticmethod
    def strip_code(text: str) -> str:
        """Remove fenced regions and everything from the first path comment on"""
        kept: List[str] = []
        in_fence = False
        for line in text.splitlines():
            if in_fence:
                if _is_closing_fence(line):
                    in_fence = False
                continue
            if _is_opening_fence(line):
                in_fence = True
                continue
            if match_path_comment(line):
                break
            kept.append(line)
        return "\n".join(kept).strip()

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def _run_passes(self, text: str) -> RawFileSet:
        files = self._path_comment_pass(text)
        if files:
            logger.debug(f"[FileExtractor] Path-comment pass found {len(files)} file(s)")
            return files

        blocks = self.scan_fenced_blocks(text)
        files, unnamed = self._fenced_block_pass(blocks)

        if len(files) <= 1:
            if not blocks and text.strip():
                # No fences at all: treat the whole text as one code region
                unnamed = [FencedBlock(info="", lines=text.splitlines())]
            for path, content in self._content_sniffing_pass(unnamed).items():
                files.setdefault(path, content)

        if not files:
            raise ExtractionEmptyError()

        logger.debug(f"[FileExtractor] Extracted {len(files)} file(s) from fenced blocks")
        return files

    def _path_comment_pass(self, text: str) -> RawFileSet:
        files: RawFileSet = {}
        lines = text.splitlines()

        current: Optional[str] = None
        buffer: List[str] = []
        bound = False       # capture ends at the closing fence
        in_fence = False

        def flush() -> None:
            nonlocal current, buffer, bound
            if current is not None:
                self._store(files, current, "\n".join(buffer))
            current, buffer, bound = None, [], False

        i = 0
        while i < len(lines):
            line = lines[i]

            if in_fence:
                if _is_closing_fence(line):
                    in_fence = False
                    if bound:
                        flush()
                    elif current is not None:
                        buffer.append(line)
                    i += 1
                    continue
                path = match_path_comment(line)
                if path:
                    flush()
                    current, bound = path, True
                elif current is not None:
                    buffer.append(line)
                i += 1
                continue

            if _is_opening_fence(line):
                in_fence = True
                next_path = match_path_comment(lines[i + 1]) if i + 1 < len(lines) else None
                if next_path:
                    flush()
                    current, bound = next_path, True
                    i += 2
                    continue
                if current is not None and not "".join(buffer).strip():
                    # Path comment directly above the fence names this block
                    buffer, bound = [], True
                elif current is not None:
                    buffer.append(line)
                i += 1
                continue

            path = match_path_comment(line)
            if path:
                flush()
                current = path
            elif current is not None:
                buffer.append(line)
            i += 1

        # Unterminated fences run to end of text
        flush()
        return files

    def _fenced_block_pass(self, blocks: List[FencedBlock]) -> Tuple[RawFileSet, List[FencedBlock]]:
        files: RawFileSet = {}
        unnamed: List[FencedBlock] = []

        for block in blocks:
            name, lines = self.name_block(block)
            if name:
                self._store(files, name, "\n".join(lines))
            else:
                unnamed.append(block)

        return files, unnamed

    def _content_sniffing_pass(self, blocks: List[FencedBlock]) -> RawFileSet:
        files: RawFileSet = {}
        for block in blocks:
            content = block.body.strip()
            if not content:
                continue
            for rule in self.content_rules:
                if rule.matches(content):
                    if rule.path not in files:
                        files[rule.path] = content
                    break
            else:
                logger.debug(f"[FileExtractor] Dropping unrecognized block ({len(content)} chars)")
        return files

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def scan_fenced_blocks(text: str) -> List[FencedBlock]:
        """Collect fenced regions; an unterminated fence runs to end of text"""
        blocks: List[FencedBlock] = []
        current: Optional[FencedBlock] = None
        preceding = ""

        for line in text.splitlines():
            if current is not None:
                if _is_closing_fence(line):
                    blocks.append(current)
                    current = None
                    preceding = ""
                else:
                    current.lines.append(line)
                continue

            fence = _FENCE.match(line)
            if fence:
                current = FencedBlock(info=fence.group("info").strip(), preceding=preceding)
            elif line.strip():
                preceding = line

        if current is not None:
            blocks.append(current)
        return blocks

    @staticmethod
    def name_block(block: FencedBlock) -> Tuple[Optional[str], List[str]]:
        """Find a file name for a fenced block, returning (name, body lines)"""
        info = block.info
        if info:
            attr = _INFO_ATTR.search(info)
            if attr:
                return normalize_path(attr.group("path")), block.lines
            # ```tsx:src/App.tsx, ```create:src/App.tsx, ```tsx src/App.tsx
            for candidate in reversed(re.split(r"[:\s]+", info)):
                if candidate and _INFO_PATH.match(candidate) and not candidate.startswith("."):
                    return normalize_path(candidate), block.lines

        if block.lines:
            path = match_path_comment(block.lines[0])
            if path:
                return path, block.lines[1:]

        if block.preceding:
            path = match_path_comment(block.preceding)
            if not path:
                bare = _BARE_PATH_LINE.match(block.preceding)
                path = normalize_path(bare.group("path")) if bare else None
            if path:
                return path, block.lines

        return None, block.lines

    @staticmethod
    def _store(files: RawFileSet, path: str, content: str) -> None:
        content = content.strip()
        if not path or not content:
            return
        if path in files:
            logger.warning(f"[FileExtractor] Duplicate file '{path}' in one pass, keeping the later block")
        files[path] = content


# Singleton instance
file_extractor = FileExtractor()
