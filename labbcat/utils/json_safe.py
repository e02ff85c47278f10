from __future__ import annotations

from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel


def to_jsonable(obj: Any) -> Any:
    """
    Convert client results to JSON-serializable equivalents.

    pydantic models are dumped with their server-side keys, so CLI output
    matches what the server itself would send.

    Security considerations:
    - does NOT execute or import anything dynamically.

    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj

    if isinstance(obj, BaseModel):
        to_json = getattr(obj, "to_json", None)
        data = to_json() if callable(to_json) else obj.model_dump(by_alias=True, exclude_none=True)
        return to_jsonable(data)

    # pathlib
    if isinstance(obj, Path):
        return str(obj)

    # dataclasses
    if is_dataclass(obj) and not isinstance(obj, type):
        return to_jsonable(asdict(obj))

    # mappings
    if isinstance(obj, Mapping):
        return {str(k): to_jsonable(v) for k, v in obj.items()}

    # iterables (including set/frozenset/tuple/list)
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [to_jsonable(x) for x in obj]

    # fallback: string representation
    return str(obj)
