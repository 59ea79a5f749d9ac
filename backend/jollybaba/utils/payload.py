from __future__ import annotations
from typing import Any, Dict, List
from flask import request
import json


def json_body() -> Dict[str, Any]:
    """JSON object body; arrays, scalars and unparsable bodies read as {}."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def request_payload() -> Dict[str, Any]:
    """Body fields from multipart/form posts or JSON, whichever the client sent."""
    if request.form:
        return request.form.to_dict()
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def parse_notes(raw: Any) -> List[Any]:
    """Notes arrive as a JSON array or a JSON-encoded string; anything else becomes []."""
    notes = raw
    if isinstance(notes, str):
        try:
            notes = json.loads(notes)
        except ValueError:
            notes = []
    if not isinstance(notes, list):
        notes = []
    return notes
