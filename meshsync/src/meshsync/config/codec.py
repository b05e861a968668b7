"""XML encoding and best-effort decoding of configuration documents.

What:
  Turn configuration XML into a plain mapping keyed by element and attribute
  names (the shape the migration chain works on), and turn a
  :class:`~meshsync.config.schema.Configuration` back into indented XML.

Why:
  Historical documents use element names that no longer exist in the model
  (``repository``, ``node``, ``directory``), so decoding cannot target the
  current models directly. Decoding is also best-effort: a truncated or
  corrupt file still yields every element that was parsed before the fault,
  which callers use to recover as much configuration as possible.

How:
  :func:`decode` drives :class:`xml.etree.ElementTree.XMLPullParser`, keeps
  the root element from the first ``start`` event and converts whatever tree
  exists when parsing stops. Which children repeat is declared per parent in
  ``LIST_CHILDREN``; which elements are records rather than text leaves is
  declared in ``RECORD_TAGS``. :func:`encode` walks the model fields using
  their aliases and the ``xml_attributes`` / ``xml_omit_empty`` class
  metadata.

Interfaces:
  :func:`decode`, :func:`encode`, ``INDENT``.

Invariants & Safety:
  - Output is indented with four spaces and ends with a newline.
  - Versioning parameters are written sorted by key.
  - Fields declared with ``exclude=True`` (location, invalid marker) are
    never written.
"""
from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel

from .schema import Configuration, VersioningConfiguration


INDENT = "    "
ROOT_TAG = Configuration.xml_tag

LIST_CHILDREN: Dict[str, FrozenSet[str]] = {
    "configuration": frozenset({"folder", "device", "repository", "node"}),
    "folder": frozenset({"device", "node"}),
    "repository": frozenset({"device", "node"}),
    "device": frozenset({"address"}),
    "node": frozenset({"address"}),
    "options": frozenset({"listenAddress"}),
    "versioning": frozenset({"param"}),
}
RECORD_TAGS: FrozenSet[str] = frozenset(
    {"configuration", "folder", "repository", "device", "node", "options", "gui", "versioning", "param"}
)


def _element_to_dict(elem: ET.Element) -> Dict[str, Any]:
    data: Dict[str, Any] = dict(elem.attrib)
    repeated = LIST_CHILDREN.get(elem.tag, frozenset())
    for child in elem:
        if child.tag in RECORD_TAGS:
            value: Any = _element_to_dict(child)
        else:
            value = child.text or ""
        if child.tag in repeated:
            data.setdefault(child.tag, []).append(value)
        else:
            data[child.tag] = value
    return data


def decode(text: str) -> Tuple[Dict[str, Any], List[str]]:
    """Parse ``text`` into a raw document mapping.

    Returns:
      ``(document, problems)``. ``problems`` is empty for a well-formed
      document; otherwise it describes the fault and ``document`` holds what
      was parsed before it. The ``version`` attribute, when present, is left
      as text.
    """

    parser = ET.XMLPullParser(events=("start",))
    parser.feed(text)
    root: Optional[ET.Element] = None
    problems: List[str] = []
    try:
        for _event, elem in parser.read_events():
            if root is None:
                root = elem
        parser.close()
    except ET.ParseError as exc:
        problems.append(f"malformed XML: {exc}")

    if root is None:
        if not problems:
            problems.append("empty document")
        return {}, problems
    if root.tag != ROOT_TAG:
        problems.append(f"expected element <{ROOT_TAG}> but have <{root.tag}>")
        return {}, problems
    return _element_to_dict(root), problems


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _encode_record(tag: str, record: BaseModel) -> ET.Element:
    elem = ET.Element(tag)
    model = type(record)
    attributes = getattr(model, "xml_attributes", frozenset())
    omit_empty = getattr(model, "xml_omit_empty", frozenset())
    for name, info in model.model_fields.items():
        if info.exclude:
            continue
        alias = info.alias or name
        value = getattr(record, name)
        if alias in omit_empty and _is_empty(value):
            continue
        if alias in attributes:
            elem.set(alias, _scalar_text(value))
        elif isinstance(record, VersioningConfiguration) and name == "params":
            for key in sorted(value):
                ET.SubElement(elem, "param", {"key": key, "val": value[key]})
        elif value is None:
            continue
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, BaseModel):
                    elem.append(_encode_record(alias, item))
                else:
                    ET.SubElement(elem, alias).text = _scalar_text(item)
        elif isinstance(value, BaseModel):
            elem.append(_encode_record(alias, value))
        else:
            ET.SubElement(elem, alias).text = _scalar_text(value)
    return elem


def encode(cfg: Configuration) -> str:
    """Serialise ``cfg`` to indented XML text with a trailing newline."""

    root = _encode_record(ROOT_TAG, cfg)
    ET.indent(root, space=INDENT)
    return ET.tostring(root, encoding="unicode") + "\n"
