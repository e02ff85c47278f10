from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

Number = Union[int, float]


@dataclass
class _Column:
    layers: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    adj: int = 1


class PatternBuilder:
    """Fluent builder for search patterns.

    A pattern is a sequence of columns, one per token position. Each column
    constrains one or more layers, and its ``adj`` says how many tokens later
    the next column may match (1 means immediately adjacent).

    Example::

        pattern = (
            PatternBuilder()
            .add_match_layer("orthography", "the")
            .add_column()
            .add_match_layer("orthography", "quick")
            .build()
        )
    """

    def __init__(self) -> None:
        self._columns: List[_Column] = []

    def add_column(self, adj: int = 1) -> "PatternBuilder":
        """Start a new column.

        If the last column has no layers yet it is reused and only its
        ``adj`` changes.
        """

        if self._columns and not self._columns[-1].layers:
            self._columns[-1].adj = adj
            return self
        self._columns.append(_Column(adj=adj))
        return self

    def add_match_layer(self, layer_id: str, regular_expression: str) -> "PatternBuilder":
        self._last_layers()[layer_id] = {"pattern": regular_expression}
        return self

    def add_not_match_layer(self, layer_id: str, regular_expression: str) -> "PatternBuilder":
        self._last_layers()[layer_id] = {"not": True, "pattern": regular_expression}
        return self

    def add_min_layer(self, layer_id: str, minimum: Number) -> "PatternBuilder":
        self._last_layers()[layer_id] = {"min": str(minimum)}
        return self

    def add_max_layer(self, layer_id: str, maximum: Number) -> "PatternBuilder":
        self._last_layers()[layer_id] = {"max": str(maximum)}
        return self

    def add_range_layer(self, layer_id: str, minimum: Number, maximum: Number) -> "PatternBuilder":
        self._last_layers()[layer_id] = {"min": str(minimum), "max": str(maximum)}
        return self

    def build(self) -> Dict[str, Any]:
        columns = []
        for i, column in enumerate(self._columns):
            out: Dict[str, Any] = {"layers": {k: dict(v) for k, v in column.layers.items()}}
            # the last column has nothing after it to be adjacent to
            if i < len(self._columns) - 1:
                out["adj"] = column.adj
            columns.append(out)
        return {"columns": columns}

    def _last_layers(self) -> Dict[str, Dict[str, Any]]:
        if not self._columns:
            self.add_column()
        return self._columns[-1].layers

    def __str__(self) -> str:
        return json.dumps(self.build(), separators=(",", ":"))
