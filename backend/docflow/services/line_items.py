import json
import re

from pydantic import TypeAdapter, ValidationError

from docflow.errors import ValidationFailed
from docflow.models.enums import InspectionStatus
from docflow.schemas.document import GoodsLineItem, WorkLineItem

# "1. Cable: 5 pcs", unit optional
NUMBERED_LINE = re.compile(r"^\d+\.\s*(.+?):\s*(\d+)\s*([A-Za-z]+(?:\s*[A-Za-z]+)*)?$")
NON_STANDARD_NOTE = "non-standard format"

_goods_list = TypeAdapter(list[GoodsLineItem])
_work_list = TypeAdapter(list[WorkLineItem])


def parse_numbered_lines(text: str) -> list[dict]:
    items = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        match = NUMBERED_LINE.match(line)
        if match and int(match.group(2)) > 0:
            items.append({
                "name": match.group(1).strip(),
                "quantity": int(match.group(2)),
                "unit": (match.group(3) or "").strip(),
                "notes": "",
                "inspection_status": InspectionStatus.UNCHECKED.value,
            })
        else:
            items.append({
                "name": line,
                "quantity": 0,
                "unit": "",
                "notes": NON_STANDARD_NOTE,
                "inspection_status": InspectionStatus.UNCHECKED.value,
            })
    return items


def parse_goods_items(value) -> list[dict]:
    """Normalize goods line items given as models, dicts, a JSON array or numbered lines."""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("["):
            try:
                value = json.loads(stripped)
            except json.JSONDecodeError:
                raise ValidationFailed("items must be a valid JSON array of line items")
        else:
            items = parse_numbered_lines(stripped)
            if not items:
                raise ValidationFailed("At least one line item is required")
            return items
    try:
        parsed = _goods_list.validate_python(value)
    except ValidationError as exc:
        raise ValidationFailed(f"Invalid line items: {exc.errors()[0]['msg']}")
    if not parsed:
        raise ValidationFailed("At least one line item is required")
    return [item.model_dump(mode="json") for item in parsed]


def parse_work_items(value) -> list[dict]:
    try:
        parsed = _work_list.validate_python(value)
    except ValidationError as exc:
        raise ValidationFailed(f"Invalid work items: {exc.errors()[0]['msg']}")
    if not parsed:
        raise ValidationFailed("At least one work item is required")
    return [item.model_dump(mode="json") for item in parsed]


def stored_items(value) -> list[dict]:
    """Line items as read back from storage. Legacy rows may hold a JSON or plain-text string."""
    if value is None:
        return []
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            return parse_numbered_lines(value)
        return decoded if isinstance(decoded, list) else []
    return list(value)
