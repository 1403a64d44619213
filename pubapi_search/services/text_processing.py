"""
Text processing for indexing: cleaning and projecting page payloads to text.

Embeddings are computed from text, so structured payloads (OpenAPI specs,
arbitrary JSON) are flattened into readable lines before embedding.
"""

import json
import re
import unicodedata
from typing import Any

HTTP_METHODS = ("get", "post", "put", "patch", "delete", "head", "options")


def clean_text(text: str) -> str:
    """
    Normalize and clean raw text.

    Noisy or inconsistent text (extra spaces, duplicate lines, mixed unicode)
    degrades embedding quality. Applies NFKC, strips lines, drops consecutive
    duplicates and collapses runs of blank lines to one.
    """
    if not text or not text.strip():
        return ""
    text = unicodedata.normalize("NFKC", text)
    lines = [line.strip() for line in text.splitlines()]
    deduped: list[str] = []
    for line in lines:
        if deduped and deduped[-1] == line:
            continue
        deduped.append(line)
    result: list[str] = []
    for line in deduped:
        if line == "":
            if result and result[-1] != "":
                result.append("")
        else:
            result.append(line)
    return "\n".join(result).strip()


def _is_openapi(content: Any) -> bool:
    return isinstance(content, dict) and (
        "openapi" in content or "swagger" in content or isinstance(content.get("paths"), dict)
    )


def _flatten(value: Any, prefix: str = "", depth: int = 0, max_depth: int = 4) -> list[str]:
    """key.path: value lines for scalar leaves; containers past max_depth are dumped as JSON."""
    if isinstance(value, dict) and depth < max_depth:
        lines: list[str] = []
        for key, item in value.items():
            lines.extend(_flatten(item, f"{prefix}.{key}" if prefix else str(key), depth + 1, max_depth))
        return lines
    if isinstance(value, list) and depth < max_depth:
        lines = []
        for i, item in enumerate(value):
            lines.extend(_flatten(item, f"{prefix}[{i}]", depth + 1, max_depth))
        return lines
    if isinstance(value, (dict, list)):
        value = json.dumps(value, sort_keys=True)
    if value is None or value == "":
        return []
    return [f"{prefix}: {value}" if prefix else str(value)]


def project_openapi(spec: dict, max_paths: int) -> list[str]:
    """Title, description, then up to max_paths paths with their operations' summaries."""
    info = spec.get("info") if isinstance(spec.get("info"), dict) else {}
    lines: list[str] = []
    if info.get("title"):
        lines.append(f"Title: {info['title']}")
    if info.get("description"):
        lines.append(f"Description: {info['description']}")
    paths = spec.get("paths") if isinstance(spec.get("paths"), dict) else {}
    if paths:
        lines.append("Sample endpoints:")
    for path in list(paths)[:max_paths]:
        operations = paths[path] if isinstance(paths[path], dict) else {}
        for method in HTTP_METHODS:
            op = operations.get(method)
            if not isinstance(op, dict):
                continue
            summary = op.get("summary") or op.get("description") or op.get("operationId") or ""
            lines.append(f"{method.upper()} {path} {summary}".rstrip())
        if not any(m in operations for m in HTTP_METHODS):
            lines.append(path)
    return lines


def project_content(content: Any, max_paths: int = 5) -> str:
    """Normalized text projection of a page payload (spec JSON, other JSON, or text)."""
    if content is None:
        return ""
    if isinstance(content, str):
        return clean_text(content)
    if _is_openapi(content):
        return clean_text("\n".join(project_openapi(content, max_paths)))
    return clean_text("\n".join(_flatten(content)))


def build_embedding_text(title: str, content: Any, max_paths: int = 5) -> str:
    """Title plus the normalized projection, without repeating the title line."""
    projection = project_content(content, max_paths=max_paths)
    title = clean_text(title or "")
    if not title:
        return projection
    if projection.startswith(f"Title: {title}"):
        return projection
    return f"{title}\n{projection}".strip()


def summary_prompt(title: str, content: Any, max_paths: int = 5) -> str:
    """Prompt asking the LLM to summarize a spec for indexing."""
    instruction = (
        "Summarize the following API specification. Provide a concise summary that "
        "captures the key features and purpose of this API:"
    )
    return f"{instruction}\n\n{build_embedding_text(title, content, max_paths)}\n\n-----\n"


def truncate(text: str, limit: int) -> str:
    """Cut text to limit characters on a word boundary, marking the cut."""
    if len(text) <= limit:
        return text
    cut = text[:limit]
    space = cut.rfind(" ")
    if space > limit // 2:
        cut = cut[:space]
    return re.sub(r"\s+$", "", cut) + " …"
