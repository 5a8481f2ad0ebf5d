"""Structured prompt content: one shape per structure type."""

from __future__ import annotations

import json
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Union

from .errors import ContentValidationError

STRUCTURE_TYPES = ("standard", "structured", "modulized", "advanced")
SEGMENT_TYPES = ("system", "user", "assistant", "context", "instruction")

_FENCE_RE = re.compile(r"^```(?:json)?\s*\n(.*)\n```$", re.DOTALL | re.IGNORECASE)


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Segment:
    type: str
    content: str
    order: int = 0
    id: str = field(default_factory=_new_id)


@dataclass
class Section:
    title: str
    content: str
    order: int = 0
    description: str | None = None
    id: str = field(default_factory=_new_id)


@dataclass
class Module:
    title: str
    content: str
    order: int = 0
    description: str | None = None
    wrappers: List[str] = field(default_factory=list)
    id: str = field(default_factory=_new_id)


@dataclass
class Block:
    title: str
    modules: List[Module] = field(default_factory=list)
    order: int = 0
    description: str | None = None
    id: str = field(default_factory=_new_id)


@dataclass
class StandardContent:
    structure_type: ClassVar[str] = "standard"
    segments: List[Segment] = field(default_factory=list)


@dataclass
class StructuredContent:
    structure_type: ClassVar[str] = "structured"
    sections: List[Section] = field(default_factory=list)


@dataclass
class ModulizedContent:
    structure_type: ClassVar[str] = "modulized"
    modules: List[Module] = field(default_factory=list)


@dataclass
class AdvancedContent:
    structure_type: ClassVar[str] = "advanced"
    blocks: List[Block] = field(default_factory=list)


PromptContent = Union[StandardContent, StructuredContent, ModulizedContent, AdvancedContent]

LIST_KEYS = {
    "standard": "segments",
    "structured": "sections",
    "modulized": "modules",
    "advanced": "blocks",
}


def _require_text(item: Dict[str, Any], key: str, where: str) -> str:
    value = item.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ContentValidationError(f"{where}: missing text field '{key}'")
    return value


def _optional_text(item: Dict[str, Any], key: str) -> str | None:
    value = item.get(key)
    if isinstance(value, str) and value.strip():
        return value
    return None


def _item_id(item: Dict[str, Any]) -> str:
    value = item.get("id")
    return str(value) if value else _new_id()


def _items(payload: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    items = payload.get(key)
    if not isinstance(items, list):
        raise ContentValidationError(f"Expected '{key}' to be a list")
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise ContentValidationError(f"{key}[{idx}] is not an object")
    return items


def _parse_module(item: Dict[str, Any], idx: int, where: str) -> Module:
    wrappers = item.get("wrappers")
    if not isinstance(wrappers, list):
        wrapper_id = _optional_text(item, "wrapper_id")
        wrappers = [wrapper_id] if wrapper_id else []
    return Module(
        title=_require_text(item, "title", where),
        content=_require_text(item, "content", where),
        order=idx,
        description=_optional_text(item, "description"),
        wrappers=[str(w) for w in wrappers],
        id=_item_id(item),
    )


def _parse_segments(payload: Dict[str, Any]) -> StandardContent:
    segments = []
    for idx, item in enumerate(_items(payload, "segments")):
        where = f"segments[{idx}]"
        seg_type = _require_text(item, "type", where)
        if seg_type not in SEGMENT_TYPES:
            raise ContentValidationError(f"{where}: unknown segment type '{seg_type}'")
        segments.append(
            Segment(
                type=seg_type,
                content=_require_text(item, "content", where),
                order=idx,
                id=_item_id(item),
            )
        )
    return StandardContent(segments=segments)


def _parse_sections(payload: Dict[str, Any]) -> StructuredContent:
    sections = []
    for idx, item in enumerate(_items(payload, "sections")):
        where = f"sections[{idx}]"
        sections.append(
            Section(
                title=_require_text(item, "title", where),
                content=_require_text(item, "content", where),
                order=idx,
                description=_optional_text(item, "description"),
                id=_item_id(item),
            )
        )
    return StructuredContent(sections=sections)


def _parse_modules(payload: Dict[str, Any]) -> ModulizedContent:
    return ModulizedContent(
        modules=[
            _parse_module(item, idx, f"modules[{idx}]")
            for idx, item in enumerate(_items(payload, "modules"))
        ]
    )


def _parse_blocks(payload: Dict[str, Any]) -> AdvancedContent:
    blocks = []
    for idx, item in enumerate(_items(payload, "blocks")):
        where = f"blocks[{idx}]"
        modules = [
            _parse_module(module, m_idx, f"{where}.modules[{m_idx}]")
            for m_idx, module in enumerate(_items(item, "modules"))
        ]
        blocks.append(
            Block(
                title=_require_text(item, "title", where),
                modules=modules,
                order=idx,
                description=_optional_text(item, "description"),
                id=_item_id(item),
            )
        )
    return AdvancedContent(blocks=blocks)


_PARSERS = {
    "standard": _parse_segments,
    "structured": _parse_sections,
    "modulized": _parse_modules,
    "advanced": _parse_blocks,
}


def content_from_dict(payload: Dict[str, Any], expected_structure_type: str) -> PromptContent:
    if expected_structure_type not in _PARSERS:
        raise ValueError(f"Unknown structure type: {expected_structure_type}")
    tag = payload.get("structure_type")
    if tag is None:
        raise ContentValidationError("Missing 'structure_type' tag")
    if tag != expected_structure_type:
        raise ContentValidationError(
            f"Structure type mismatch: requested '{expected_structure_type}', got '{tag}'"
        )
    return _PARSERS[expected_structure_type](payload)


def parse_content(raw_text: str, expected_structure_type: str) -> PromptContent:
    """Parses model output into the content shape for ``expected_structure_type``.

    The output must be a single JSON object whose ``structure_type`` equals the
    requested one. A single surrounding markdown code fence is allowed.
    """
    text = (raw_text or "").strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1).strip()
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ContentValidationError("Failed to parse generated content as JSON") from exc
    if not isinstance(payload, dict):
        raise ContentValidationError("Generated content is not a JSON object")
    return content_from_dict(payload, expected_structure_type)


def _module_dict(module: Module) -> Dict[str, Any]:
    return {
        "id": module.id,
        "title": module.title,
        "description": module.description,
        "content": module.content,
        "wrappers": list(module.wrappers),
        "order": module.order,
    }


def content_to_dict(content: PromptContent) -> Dict[str, Any]:
    if isinstance(content, StandardContent):
        items = [
            {"id": s.id, "type": s.type, "content": s.content, "order": s.order}
            for s in content.segments
        ]
    elif isinstance(content, StructuredContent):
        items = [
            {"id": s.id, "title": s.title, "description": s.description, "content": s.content, "order": s.order}
            for s in content.sections
        ]
    elif isinstance(content, ModulizedContent):
        items = [_module_dict(m) for m in content.modules]
    elif isinstance(content, AdvancedContent):
        items = [
            {
                "id": b.id,
                "title": b.title,
                "description": b.description,
                "modules": [_module_dict(m) for m in b.modules],
                "order": b.order,
            }
            for b in content.blocks
        ]
    else:
        raise TypeError(f"Unsupported content type: {type(content).__name__}")
    return {"structure_type": content.structure_type, LIST_KEYS[content.structure_type]: items}
