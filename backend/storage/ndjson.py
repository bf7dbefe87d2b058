"""
NDJSON files of place documents: one JSON document per line.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, List, Union

from domain.models import Place


class PlaceStreamError(ValueError):
    """A line of an NDJSON stream could not be turned into a Place."""

    def __init__(self, line: int, message: str):
        self.line = line
        self.message = message
        super().__init__(f"Line {line}: {message}")


def places_to_ndjson(places: Iterable[Place]) -> str:
    """Serialize places one document per line; no trailing newline."""
    return "\n".join(json.dumps(p.to_document(), ensure_ascii=False) for p in places)


def write_places_to_ndjson(places: Iterable[Place], path: Union[str, Path]) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    content = places_to_ndjson(places)
    target.write_text(content + "\n" if content else "", encoding="utf-8")
    return target


def parse_places_ndjson(text: str) -> List[Place]:
    """
    Parse NDJSON text into Places.

    Blank lines are ignored. The first unreadable line raises PlaceStreamError
    with its physical 1-based line number.
    """
    places: List[Place] = []
    for line_number, line in enumerate(text.split("\n"), start=1):
        if not line.strip():
            continue
        try:
            doc = json.loads(line)
        except json.JSONDecodeError as exc:
            raise PlaceStreamError(line_number, f"Invalid JSON: {exc.msg}") from exc
        try:
            places.append(Place.from_document(doc))
        except ValueError as exc:
            raise PlaceStreamError(line_number, str(exc)) from exc
    return places


def read_places_from_ndjson(path: Union[str, Path]) -> List[Place]:
    return parse_places_ndjson(Path(path).read_text(encoding="utf-8"))
