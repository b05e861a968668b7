"""
Module: tests/unit/test_defaults.py

What:
    Exercise the declared default table and its two injection passes.

Why:
    Defaults decide how a sparse or hand-written configuration behaves. A
    scalar injected over an explicit value, or a sequence seeded on top of
    decoded entries, would silently change the node's behaviour.

How:
    Build records at their zero values, run the injectors with the shipped
    table or a deliberately broken one, and assert on the resulting fields.

Interfaces:
    test_scalar_defaults_fill_zero_values, test_explicit_values_are_kept,
    test_sequences_are_seeded_only_when_absent, test_broken_literal_raises
"""

import pytest

from meshsync.config.defaults import apply_defaults, fill_absent_sequences, validate_defaults
from meshsync.config.errors import SchemaDefaultError
from meshsync.config.schema import (
    Configuration,
    FolderConfiguration,
    GUIConfiguration,
    OptionsConfiguration,
)


def test_scalar_defaults_fill_zero_values():
    """
    What:
        Apply the declared defaults to empty records.

    Why:
        A fresh node relies on these values for announce, GUI and rescan
        behaviour.
    """

    options = apply_defaults(OptionsConfiguration())

    assert options.global_ann_server == "announce.syncthing.net:22026"
    assert options.global_ann_enabled is True
    assert options.local_ann_port == 21025
    assert options.local_ann_mc_addr == "[ff32::5222]:21026"
    assert options.reconnect_interval_s == 60
    assert options.upnp_renewal_minutes == 30
    assert options.auto_upgrade_interval_h == 12
    assert options.ur_accepted == 0
    # Sequences are left for the second pass.
    assert options.listen_address is None

    gui = apply_defaults(GUIConfiguration())
    assert gui.enabled is True
    assert gui.address == "127.0.0.1:8080"

    assert apply_defaults(FolderConfiguration()).rescan_interval_s == 60
    assert apply_defaults(Configuration()).version == 5


def test_explicit_values_are_kept():
    """
    What:
        Apply defaults to records that already carry values.

    Why:
        Operator settings must never be overwritten by defaults.
    """

    folder = apply_defaults(FolderConfiguration(id="docs", rescan_interval_s=15))
    gui = apply_defaults(GUIConfiguration(address="0.0.0.0:9090"))

    assert folder.rescan_interval_s == 15
    assert gui.address == "0.0.0.0:9090"


def test_sequences_are_seeded_only_when_absent():
    """
    What:
        Seed list defaults on absent, empty and populated lists.

    Why:
        An explicitly empty list is a choice; only an absent one gets the
        default.
    """

    absent = fill_absent_sequences(OptionsConfiguration())
    explicit = fill_absent_sequences(OptionsConfiguration(listen_address=[]))
    decoded = fill_absent_sequences(OptionsConfiguration(listen_address=[":22001"]))

    assert absent.listen_address == ["0.0.0.0:22000"]
    assert explicit.listen_address == []
    assert decoded.listen_address == [":22001"]


def test_broken_literal_raises():
    """
    What:
        Validate a defaults table whose literal does not parse.

    Why:
        A broken table is a programming error and must fail loudly.
    """

    table = {FolderConfiguration: {"rescan_interval_s": "soon"}}

    with pytest.raises(SchemaDefaultError):
        validate_defaults(table)
    with pytest.raises(SchemaDefaultError):
        apply_defaults(FolderConfiguration(), table)


def test_unknown_field_raises():
    """
    What:
        Validate a defaults table naming an unknown field.

    Why:
        Typos in the table would otherwise be ignored silently.
    """

    with pytest.raises(SchemaDefaultError):
        validate_defaults({GUIConfiguration: {"colour": "blue"}})
