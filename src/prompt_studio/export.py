"""Renders structured prompt content for display and export."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import List

import yaml

from .content import (
    AdvancedContent,
    Module,
    ModulizedContent,
    PromptContent,
    StandardContent,
    StructuredContent,
    content_to_dict,
)


@dataclass(frozen=True)
class ExportFormat:
    id: str
    name: str
    extension: str
    mime_type: str


EXPORT_FORMATS = {
    "plain-text": ExportFormat("plain-text", "Plain Text", "txt", "text/plain"),
    "markdown": ExportFormat("markdown", "Markdown", "md", "text/markdown"),
    "yaml": ExportFormat("yaml", "YAML", "yaml", "application/x-yaml"),
    "json": ExportFormat("json", "JSON", "json", "application/json"),
}


def _module_lines(module: Module, markdown: bool, heading: str) -> List[str]:
    lines = [f"{heading} {module.title}" if markdown else f"MODULE: {module.title}"]
    if module.description:
        lines.append(module.description)
    if module.wrappers:
        label = "**Wrappers**" if markdown else "Wrappers"
        lines.append(f"{label}: {', '.join(module.wrappers)}")
    lines.append(module.content)
    return lines


def _render_text(content: PromptContent, markdown: bool) -> str:
    chunks: List[List[str]] = []
    if isinstance(content, StandardContent):
        for segment in content.segments:
            if markdown:
                chunks.append([f"### {segment.type.capitalize()} Segment", segment.content])
            else:
                chunks.append([f"[{segment.type.upper()}]", segment.content])
    elif isinstance(content, StructuredContent):
        for section in content.sections:
            lines = [f"## {section.title}"]
            if section.description:
                lines.append(section.description)
            lines.append(section.content)
            chunks.append(lines)
    elif isinstance(content, ModulizedContent):
        for module in content.modules:
            chunks.append(_module_lines(module, markdown, "### Module:"))
    elif isinstance(content, AdvancedContent):
        for block in content.blocks:
            lines = [f"## {block.title}" if markdown else f"BLOCK: {block.title}"]
            if block.description:
                lines.append(block.description)
            chunks.append(lines)
            for module in block.modules:
                chunks.append(_module_lines(module, markdown, "###"))
    separator = "\n\n" if markdown else "\n"
    return "\n\n".join(separator.join(lines) for lines in chunks) + "\n"


def render_content(content: PromptContent, fmt: str = "plain-text") -> str:
    if fmt == "plain-text":
        return _render_text(content, markdown=False)
    if fmt == "markdown":
        return _render_text(content, markdown=True)
    if fmt == "json":
        return json.dumps(content_to_dict(content), indent=2, ensure_ascii=False)
    if fmt == "yaml":
        return yaml.safe_dump(content_to_dict(content), sort_keys=False, allow_unicode=True)
    raise ValueError(f"Unsupported export format: {fmt}")
