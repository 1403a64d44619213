"""
Agent directives: the only model-driven branch in the browsing loop.

The decide step asks the model for one JSON object and parses it into a
SearchDirective, VisitDirective or ConcludeDirective.
"""

import json
import re
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from pubapi_search.core.errors import DirectiveParseError

_ACTION_ALIASES = {
    "search": "search",
    "query": "search",
    "visit": "visit",
    "open": "visit",
    "navigate": "visit",
    "conclude": "conclude",
    "answer": "conclude",
    "finish": "conclude",
    "final": "conclude",
}

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class SearchDirective(BaseModel):
    action: Literal["search"] = "search"
    query: str = Field(..., min_length=1)


class VisitDirective(BaseModel):
    action: Literal["visit"] = "visit"
    document_id: str = Field(..., min_length=1)


class ConcludeDirective(BaseModel):
    action: Literal["conclude"] = "conclude"
    answer: str = ""


Directive = Annotated[
    Union[SearchDirective, VisitDirective, ConcludeDirective],
    Field(discriminator="action"),
]

_directive_adapter = TypeAdapter(Directive)

DIRECTIVE_FORMAT = (
    'Reply with exactly one JSON object and nothing else:\n'
    '- {"action": "search", "query": "<search phrase>"} to search the API index\n'
    '- {"action": "visit", "document_id": "<id from a search result>"} to open that API spec\n'
    '- {"action": "conclude", "answer": "<what the final answer should say>"} once you know enough'
)


def extract_json_object(reply: str) -> dict:
    """First JSON object in reply, looking inside ``` fences first."""
    text = (reply or "").strip()
    fenced = _FENCE.search(text)
    candidates = [fenced.group(1).strip(), text] if fenced else [text]
    decoder = json.JSONDecoder()
    for candidate in candidates:
        for match in re.finditer(r"\{", candidate):
            try:
                obj, _ = decoder.raw_decode(candidate[match.start():])
            except json.JSONDecodeError:
                continue
            if isinstance(obj, dict):
                return obj
    raise DirectiveParseError("no JSON object in model reply", raw=text)


def parse_directive(reply: str) -> SearchDirective | VisitDirective | ConcludeDirective:
    """
    Normalize and parse a decide-step reply.

    Raises:
        DirectiveParseError: if no valid directive remains after normalization.
    """
    obj = extract_json_object(reply)
    action = str(obj.get("action") or obj.get("type") or "").strip().lower()
    obj = {**obj, "action": _ACTION_ALIASES.get(action, action)}
    if obj["action"] == "visit" and "document_id" not in obj and "id" in obj:
        obj["document_id"] = str(obj["id"])
    try:
        return _directive_adapter.validate_python(obj)
    except ValidationError as e:
        raise DirectiveParseError(f"invalid directive: {e.errors()[0].get('msg', e)}", raw=reply) from e
