"""
Record Conversion Utilities

Converts the loosely-typed mappings that provider callbacks return into
the typed record dataclasses used by the core, and back into JSON-safe
dictionaries for output and persistence.

Conversion Strategy:
- Use pydantic TypeAdapter for mapping -> dataclass validation
- Cache TypeAdapter instances per record type
- Wrap ValidationError in TypeCoercionError with field-level details
- Optionally salvage records by dropping invalid optional fields
"""

from __future__ import annotations

import dataclasses
import functools
import logging
from collections import defaultdict
from collections.abc import Mapping, Sequence
from typing import Any, TypeVar, cast

import orjson
from pydantic import TypeAdapter, ValidationError

from mediabridge.shared.errors import TypeCoercionError, create_type_coercion_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


@functools.lru_cache(maxsize=128)
def _get_type_adapter(record_cls: type[Any]) -> TypeAdapter[Any]:
    """Get or create a cached TypeAdapter for the given record class."""
    return TypeAdapter(record_cls)


def _coercion_error(record_cls: type[Any], error: ValidationError) -> TypeCoercionError:
    model_name = record_cls.__name__
    validation_errors = cast(
        "list[dict[str, Any]]", [dict(err) for err in error.errors()]
    )
    return create_type_coercion_error(
        message=(
            f"Failed to convert mapping to {model_name}: "
            f"{len(validation_errors)} validation error(s)"
        ),
        model_name=model_name,
        validation_errors=validation_errors,
        operation="mapping_to_record",
        original_error=error,
    )


def _repair_invalid_fields(
    data: Any,
    record_cls: type[Any],
    errors: Sequence[Mapping[str, Any]],
    defaults: Mapping[str, Any],
) -> dict[str, Any] | None:
    """Copy of ``data`` with the fields named in ``errors`` dropped or defaulted.

    Returns None when a required field fails and no default replaces it.
    """
    if not isinstance(data, Mapping) or not dataclasses.is_dataclass(record_cls):
        return None

    optional = {
        f.name
        for f in dataclasses.fields(record_cls)
        if f.default is not dataclasses.MISSING
        or f.default_factory is not dataclasses.MISSING
    }
    repaired = dict(data)
    dropped_fields: set[str] = set()
    bad_items: dict[str, set[int]] = defaultdict(set)

    for err in errors:
        loc = err.get("loc", ())
        if not loc or not isinstance(loc[0], str):
            return None
        name = loc[0]
        if name in defaults:
            repaired[name] = defaults[name]
        elif name not in optional:
            return None
        elif len(loc) > 1 and isinstance(loc[1], int) and isinstance(data.get(name), list):
            bad_items[name].add(loc[1])
        else:
            dropped_fields.add(name)

    for name in dropped_fields:
        repaired.pop(name, None)
    for name, indexes in bad_items.items():
        if name not in dropped_fields:
            repaired[name] = [
                item for index, item in enumerate(data[name]) if index not in indexes
            ]
    return repaired


class RecordConverter:
    """Static helpers for converting between mappings and typed records.

    Usage:
        >>> from mediabridge.core.models import Episode
        >>> episode = RecordConverter.to_record({"id": "e1", "number": 1}, Episode)
        >>> episode.number
        1
    """

    @staticmethod
    def to_record(
        data: Mapping[str, Any] | T,
        record_cls: type[T],
        *,
        lenient: bool = False,
        defaults: Mapping[str, Any] | None = None,
    ) -> T:
        """Convert a mapping to ``record_cls``.

        Instances of ``record_cls`` are returned unchanged. In lenient mode
        invalid optional fields are dropped (invalid list items one by one),
        and invalid required fields are replaced from ``defaults`` before a
        single retry.

        Args:
            data: Source mapping or an existing record
            record_cls: Target dataclass type
            lenient: Salvage records whose only problems are recoverable
            defaults: Replacement values for invalid or missing required fields

        Returns:
            Validated record instance

        Raises:
            TypeCoercionError: If validation fails
        """
        if isinstance(data, record_cls):
            return data
        adapter = _get_type_adapter(record_cls)
        try:
            return cast("T", adapter.validate_python(data))
        except ValidationError as e:
            repaired = (
                _repair_invalid_fields(data, record_cls, e.errors(), defaults or {})
                if lenient
                else None
            )
            if repaired is None:
                raise _coercion_error(record_cls, e) from e

        try:
            record = cast("T", adapter.validate_python(repaired))
        except ValidationError as e:
            raise _coercion_error(record_cls, e) from e
        logger.debug("Salvaged %s after dropping invalid fields", record_cls.__name__)
        return record

    @staticmethod
    def to_records(items: list[Any], record_cls: type[T]) -> list[T]:
        """Convert every item of a list. Fails on the first invalid item."""
        return [RecordConverter.to_record(item, record_cls) for item in items]

    @staticmethod
    def to_dict(record: Any, *, exclude_none: bool = False) -> dict[str, Any]:
        """Dump a record to a JSON-safe dictionary."""
        adapter = _get_type_adapter(type(record))
        return cast(
            "dict[str, Any]",
            adapter.dump_python(record, mode="json", exclude_none=exclude_none),
        )

    @staticmethod
    def to_json_bytes(value: Any) -> bytes:
        """Serialize a JSON-safe value (or record) with orjson."""
        return orjson.dumps(value, option=orjson.OPT_NON_STR_KEYS)
