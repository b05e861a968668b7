"""Declared default values and the two-pass default injector.

What:
  Hold the static default table for configuration records and apply it to
  freshly constructed or freshly decoded instances.

Why:
  Defaults are injected *before* decoding so that elements missing from the
  file keep their declared value while anything present in the file wins.
  Sequence fields cannot be seeded that early: decoded elements would be
  appended to the seed. They are instead filled after decoding, and only when
  the document did not mention them at all (``None``), never when it held an
  explicitly empty list.

How:
  ``DEFAULTS`` maps each record class to ``{field name: literal}``. Literals
  are parsed according to the field annotation (``str``, ``int``, ``bool``).
  :func:`apply_defaults` is the first pass over scalar fields,
  :func:`fill_absent_sequences` the second pass over sequences.

Interfaces:
  ``DEFAULTS``, :func:`apply_defaults`, :func:`fill_absent_sequences`,
  :func:`validate_defaults`.

Invariants & Safety:
  - A field is only touched while it still holds its zero value.
  - A literal that does not parse for its field type raises
    :class:`SchemaDefaultError`; the table is checked once at import time so
    a broken build fails at startup rather than on first use.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar, Union, get_args, get_origin

from pydantic import BaseModel

from .errors import SchemaDefaultError
from .schema import (
    Configuration,
    FolderConfiguration,
    GUIConfiguration,
    OptionsConfiguration,
)


DefaultTable = Mapping[Type[BaseModel], Mapping[str, str]]
RecordT = TypeVar("RecordT", bound=BaseModel)

DEFAULTS: Dict[Type[BaseModel], Dict[str, str]] = {
    Configuration: {
        "version": "5",
    },
    FolderConfiguration: {
        "rescan_interval_s": "60",
    },
    OptionsConfiguration: {
        "listen_address": "0.0.0.0:22000",
        "global_ann_server": "announce.syncthing.net:22026",
        "global_ann_enabled": "true",
        "local_ann_enabled": "true",
        "local_ann_port": "21025",
        "local_ann_mc_addr": "[ff32::5222]:21026",
        "reconnect_interval_s": "60",
        "start_browser": "true",
        "upnp_enabled": "true",
        "upnp_lease_minutes": "0",
        "upnp_renewal_minutes": "30",
        "restart_on_wakeup": "true",
        "auto_upgrade_interval_h": "12",
    },
    GUIConfiguration: {
        "enabled": "true",
        "address": "127.0.0.1:8080",
    },
}


def _field_kind(model: Type[BaseModel], name: str) -> Any:
    """Return the scalar type of ``name`` or ``list`` for sequence fields."""

    try:
        annotation = model.model_fields[name].annotation
    except KeyError as exc:
        raise SchemaDefaultError(f"{model.__name__} has no field {name!r}") from exc
    origin = get_origin(annotation)
    if origin is Union:
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        annotation = args[0] if len(args) == 1 else annotation
        origin = get_origin(annotation)
    if origin in (list, List):
        return list
    return annotation


def _parse(model: Type[BaseModel], name: str, kind: Any, literal: str) -> Any:
    if kind is str:
        return literal
    if kind is bool:
        return literal == "true"
    if kind is int:
        try:
            return int(literal, 10)
        except ValueError as exc:
            raise SchemaDefaultError(
                f"default {literal!r} for {model.__name__}.{name} is not an integer"
            ) from exc
    raise SchemaDefaultError(f"unsupported default type {kind!r} for {model.__name__}.{name}")


def _is_zero(value: Any) -> bool:
    return value is None or (value is not True and value in ("", 0, False))


def apply_defaults(record: RecordT, table: Optional[DefaultTable] = None) -> RecordT:
    """Set every zero-valued scalar field of ``record`` to its declared default.

    Sequence fields are skipped; see :func:`fill_absent_sequences`.

    Raises:
      SchemaDefaultError: When a declared literal cannot be parsed.
    """

    model = type(record)
    for name, literal in (table or DEFAULTS).get(model, {}).items():
        kind = _field_kind(model, name)
        if kind is list:
            continue
        if _is_zero(getattr(record, name)):
            setattr(record, name, _parse(model, name, kind, literal))
    return record


def fill_absent_sequences(record: RecordT, table: Optional[DefaultTable] = None) -> RecordT:
    """Seed defaulted sequence fields that are still ``None`` with their default."""

    model = type(record)
    for name, literal in (table or DEFAULTS).get(model, {}).items():
        if _field_kind(model, name) is list and getattr(record, name) is None:
            setattr(record, name, [literal])
    return record


def validate_defaults(table: Optional[DefaultTable] = None) -> None:
    """Parse every literal of ``table`` once, raising on the first bad entry."""

    for model, entries in (table or DEFAULTS).items():
        for name, literal in entries.items():
            kind = _field_kind(model, name)
            if kind is not list:
                _parse(model, name, kind, literal)


validate_defaults()
