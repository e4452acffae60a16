"""
Response Splitter
Separates a raw AI response into prose, a code blob, a mermaid diagram and an
inferred project configuration.
"""

import re
from typing import List, Optional

from appforge.core.logging_config import logger
from appforge.modules.extraction.config_parser import ConfigParser, config_parser, is_config_block
from appforge.modules.extraction.file_extractor import FileExtractor
from appforge.schemas.session import GenerationResult


_MERMAID_LABEL_JUNK = re.compile(r"[()\":']")
_WHITESPACE_RUN = re.compile(r"\s+")


def sanitize_mermaid_line(line: str) -> str:
    """Strip characters mermaid chokes on inside labels and edge names"""
    return _WHITESPACE_RUN.sub(" ", _MERMAID_LABEL_JUNK.sub("", line)).strip()


class ResponseSplitter:

    def __init__(self, parser: Optional[ConfigParser] = None):
        self.parser = parser or config_parser

    def split(self, full_text: Optional[str]) -> GenerationResult:
        full_text = (full_text or "").strip()
        if not full_text:
            return GenerationResult(text="", config=self.parser.default())

        code = self.extract_code(full_text)
        result = GenerationResult(
            text=self.extract_text(full_text),
            code=code or None,
            mermaid_code=self.extract_mermaid(full_text),
            config=self.parser.extract_config(full_text),
        )
        logger.debug(
            f"[ResponseSplitter] Split response: {len(result.text)} chars prose, "
            f"{len(code)} chars code, mermaid={'yes' if result.mermaid_code else 'no'}"
        )
        return result

    @staticmethod
    def extract_text(full_text: str) -> str:
        """Prose with every fenced block removed; first paragraph as fallback"""
        kept: List[str] = []
        in_fence = False
        for line in full_text.splitlines():
            if line.lstrip().startswith("```"):
                in_fence = not in_fence
                continue
            if not in_fence:
                kept.append(line)
        cleaned = "\n".join(kept).strip()

        if not cleaned:
            first_paragraph = full_text.split("\n\n")[0].strip()
            if first_paragraph and "```" not in first_paragraph:
                return first_paragraph
        return cleaned

    @staticmethod
    def extract_code(full_text: str) -> str:
        """
        Concatenate every non-mermaid fenced block.

        Named blocks are re-emitted as "// path" + body so the file extractor
        can still name them once the fences are gone. Unnamed blocks keep
        their fences and go first, ahead of any path comment. The embedded
        project configuration is left out.
        """
        unnamed: List[str] = []
        named: List[str] = []
        for block in FileExtractor.scan_fenced_blocks(full_text):
            if block.info.lower().startswith("mermaid"):
                continue
            path, lines = FileExtractor.name_block(block)
            body = "\n".join(lines).strip()
            if not body:
                continue
            if path:
                named.append(f"// {path}\n{body}")
            elif not is_config_block(body):
                unnamed.append(f"```{block.info}\n{body}\n```")
        return "\n\n".join(unnamed + named).strip()

    @staticmethod
    def extract_mermaid(full_text: str) -> Optional[str]:
        for block in FileExtractor.scan_fenced_blocks(full_text):
            if block.info.lower().startswith("mermaid"):
                lines = block.body.strip().splitlines()
                return "\n".join(sanitize_mermaid_line(line) for line in lines)
        return None


# Singleton instance
response_splitter = ResponseSplitter()
