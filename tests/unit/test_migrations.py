"""
Module: tests/unit/test_migrations.py

What:
    Validate each schema upgrade step and the chained :func:`migrate` entry
    point on decoded documents.

Why:
    Nodes upgrade across several releases at once. A step that drops a
    device, loses a GUI address or forgets a folder flag would only show up
    on an operator's machine.

How:
    Feed hand-built raw mappings (the shape produced by the codec) to single
    steps and to the full chain, then assert on the upgraded mapping.

Interfaces:
    test_v1_flattens_nodes_and_moves_gui, test_v1_without_gui_keys_disables_gui,
    test_v2_enables_compression_and_fixes_port,
    test_v3_moves_rescan_interval, test_v4_renames_entities,
    test_migrate_chains_from_v1, test_usage_reporting_reconciled,
    test_current_document_untouched
"""

import io
import json

from meshsync.config.migrations import (
    CURRENT_ANNOUNCE_SERVER,
    LEGACY_ANNOUNCE_SERVER,
    MIGRATIONS,
    migrate,
)
from meshsync.utils.logging import JsonLogger


def test_v1_flattens_nodes_and_moves_gui(make_id):
    """
    What:
        Upgrade a version 1 document with per-folder nodes and GUI options.

    Why:
        Devices move to the root list, the read-only flag moves to folders and
        the GUI record is rebuilt from options.
    """

    a, b = str(make_id(0x02)), str(make_id(0x01))
    document = {
        "version": 1,
        "repository": [
            {"id": "docs", "directory": "/docs", "node": [{"id": a, "name": "a", "address": ["dynamic"]}]},
            {"id": "pics", "directory": "/pics", "node": [{"id": a}, {"id": b, "name": "b"}]},
        ],
        "options": {"readOnly": "true", "guiAddress": "0.0.0.0:8384", "guiEnabled": "false"},
    }

    upgraded = MIGRATIONS[1](document)

    assert upgraded["version"] == 2
    assert [node["id"] for node in upgraded["node"]] == [b, a]
    assert upgraded["node"][1]["name"] == "a"
    assert upgraded["repository"][1]["node"] == [{"id": a}, {"id": b}]
    assert all(repo["ro"] == "true" for repo in upgraded["repository"])
    assert upgraded["gui"] == {"address": "0.0.0.0:8384", "enabled": "false"}
    assert "guiAddress" not in upgraded["options"]
    assert "readOnly" not in upgraded["options"]
    # Steps never touch their input.
    assert document["options"]["readOnly"] == "true"


def test_v1_without_gui_keys_disables_gui():
    """
    What:
        Upgrade a version 1 document without GUI options.

    Why:
        The GUI record is always rebuilt from the old fields, so missing
        fields leave it disabled.
    """

    upgraded = MIGRATIONS[1]({"version": 1, "options": {}})

    assert upgraded["gui"] == {"address": "", "enabled": "false"}
    assert upgraded["node"] == []


def test_v2_enables_compression_and_fixes_port():
    """
    What:
        Upgrade a version 2 document.

    Why:
        Compression became mandatory and the default announce server moved
        port.
    """

    document = {
        "version": 2,
        "node": [{"id": "x", "compression": "false"}],
        "options": {"globalAnnounceServer": LEGACY_ANNOUNCE_SERVER},
    }

    upgraded = MIGRATIONS[2](document)

    assert upgraded["version"] == 3
    assert upgraded["node"][0]["compression"] == "true"
    assert upgraded["options"]["globalAnnounceServer"] == CURRENT_ANNOUNCE_SERVER


def test_v2_keeps_custom_announce_server():
    """
    What:
        Upgrade a version 2 document naming a private announce server.

    Why:
        Only the old default is rewritten.
    """

    document = {"version": 2, "options": {"globalAnnounceServer": "announce.example.org:22025"}}

    upgraded = MIGRATIONS[2](document)

    assert upgraded["options"]["globalAnnounceServer"] == "announce.example.org:22025"


def test_v3_moves_rescan_interval():
    """
    What:
        Upgrade a version 3 document with and without a global rescan
        interval.

    Why:
        The interval becomes per-folder and folder node records shrink to bare
        IDs.
    """

    document = {
        "version": 3,
        "repository": [{"id": "docs", "node": [{"id": "x", "name": "n", "address": ["dynamic"]}]}],
        "options": {"rescanIntervalS": "300"},
    }

    upgraded = MIGRATIONS[3](document)

    assert upgraded["version"] == 4
    assert upgraded["repository"][0]["rescanIntervalS"] == "300"
    assert upgraded["repository"][0]["node"] == [{"id": "x"}]
    assert "rescanIntervalS" not in upgraded["options"]

    untouched = MIGRATIONS[3]({"version": 3, "repository": [{"id": "docs"}], "options": {}})
    assert "rescanIntervalS" not in untouched["repository"][0]


def test_v4_renames_entities():
    """
    What:
        Upgrade a version 4 document.

    Why:
        Repositories become folders and nodes become devices.
    """

    document = {
        "version": 4,
        "repository": [{"id": "docs", "directory": "/docs", "node": [{"id": "x"}]}],
        "node": [{"id": "x", "name": "peer"}],
        "device": [{"id": "stale"}],
    }

    upgraded = MIGRATIONS[4](document)

    assert upgraded["version"] == 5
    assert "repository" not in upgraded and "node" not in upgraded
    assert upgraded["folder"] == [{"id": "docs", "path": "/docs", "device": [{"id": "x"}]}]
    assert upgraded["device"] == [{"id": "x", "name": "peer"}]


def test_migrate_chains_from_v1(make_id):
    """
    What:
        Run the full chain from version 1.

    Why:
        Nodes skip releases, so each step must feed the next and be logged.
    """

    peer = str(make_id(0x05))
    stream = io.StringIO()
    document = {
        "version": 1,
        "repository": [{"id": "docs", "directory": "/docs", "node": [{"id": peer, "name": "p"}]}],
        "options": {"globalAnnounceServer": LEGACY_ANNOUNCE_SERVER, "rescanIntervalS": "120"},
    }

    upgraded = migrate(document, logger=JsonLogger(stream=stream))

    assert upgraded["version"] == 5
    folder = upgraded["folder"][0]
    assert folder["path"] == "/docs"
    assert folder["rescanIntervalS"] == "120"
    assert folder["ro"] == "false"
    assert folder["device"] == [{"id": peer}]
    assert upgraded["device"] == [{"id": peer, "name": "p", "address": [], "compression": "true"}]
    assert upgraded["options"]["globalAnnounceServer"] == CURRENT_ANNOUNCE_SERVER

    entries = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert [(e["from_version"], e["to_version"]) for e in entries] == [(1, 2), (2, 3), (3, 4), (4, 5)]


def test_usage_reporting_reconciled():
    """
    What:
        Migrate current documents with legacy usage-reporting flags.

    Why:
        A declined report becomes a permanent refusal and the old flags
        disappear.
    """

    declined = migrate({"version": 5, "options": {"urDeclined": "true", "urEnabled": "false"}})
    enabled = migrate({"version": 5, "options": {"urEnabled": "true"}})

    assert declined["options"] == {"urAccepted": "-1"}
    assert enabled["options"] == {}


def test_current_document_untouched():
    """
    What:
        Migrate documents at or beyond the current version.

    Why:
        Newer files are left alone rather than downgraded.
    """

    document = {"version": 5, "folder": [{"id": "a"}], "options": {}}

    assert migrate(document) == document
    assert migrate({"version": 9}) == {"version": 9}
