"""Field merge helpers for the TTable projector.

Decision-flow responses carry their results either as
``data.stages[].result[]`` lists of ``{field_name, field_value}`` pairs or as a
flat ``data.temp_results`` object. These helpers flatten both shapes into a field
map and merge it into a working record.
"""

from __future__ import annotations

from typing import Any

from litestar_flowgraph.core.types import Document

__all__ = ["collect_stage_results", "collect_temp_results", "merge_documents"]


def merge_documents(base: Document, other: Document, *, merge_arrays: bool = False) -> Document:
    """Merge ``other`` into a copy of ``base``.

    The merge is shallow: every top-level key of ``other`` overwrites the one in
    ``base``. With ``merge_arrays`` a list in ``other`` is merged element-wise into
    a list in ``base``, index by index, keeping trailing base elements.

    Args:
        base: The document merged into.
        other: The document whose values win.
        merge_arrays: Merge lists element-wise instead of replacing them.

    Returns:
        A new merged document; the inputs are not modified.

    Example:
        >>> merge_documents({"a": 1, "l": [1, 2, 3]}, {"a": 2, "l": [9]}, merge_arrays=True)
        {'a': 2, 'l': [9, 2, 3]}
    """
    merged = dict(base)
    for key, value in other.items():
        current = merged.get(key)
        if merge_arrays and isinstance(value, list) and isinstance(current, list):
            combined = list(current)
            for i, item in enumerate(value):
                if i < len(combined):
                    combined[i] = item
                else:
                    combined.append(item)
            merged[key] = combined
        else:
            merged[key] = value
    return merged


def collect_stage_results(output: Document | None) -> Document:
    """Flatten the stage results of a decision-flow response.

    Later stages overwrite earlier ones for the same field; results without a
    field name are skipped.

    Args:
        output: The decision-flow response.

    Returns:
        Map of field name to value.
    """
    fields: Document = {}
    for stage in _path(output, "data", "stages") or []:
        if not isinstance(stage, dict):
            continue
        for result in stage.get("result") or []:
            if not isinstance(result, dict):
                continue
            name = result.get("field_name")
            if name is None or not str(name).strip():
                continue
            fields[str(name)] = result.get("field_value")
    return fields


def collect_temp_results(output: Document | None) -> Document:
    """Extract the non-empty temp results of a decision-flow response.

    Args:
        output: The decision-flow response.

    Returns:
        Map of field name to value, without ``None`` or blank string values.
    """
    temp = _path(output, "data", "temp_results")
    if not isinstance(temp, dict):
        return {}
    return {k: v for k, v in temp.items() if not _is_blank(v)}


def _path(document: Document | None, *keys: str) -> Any:
    value: Any = document
    for key in keys:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())
