"""Fixed-length device identities and their textual form.

What:
  Model the 32-byte cryptographic identity of a peer (:class:`DeviceID`) and
  convert it to and from the grouped, check-summed base32 text that appears in
  configuration files and user interfaces.

Why:
  Folder membership edges, the root device list, and the local node's own
  entry all refer to devices by identity. Collision checks and sorting must
  agree on one primitive, so equality, hashing and ordering are defined over
  the raw bytes rather than over whichever spelling a user typed.

How:
  The canonical text is the unpadded base32 encoding (52 characters) with a
  Luhn mod-32 check character appended to each 13-character group, split into
  eight dash-separated blocks of seven. Parsing is forgiving about case,
  separators and the commonly mistyped digits ``0``, ``1`` and ``8``, and also
  accepts the older unchecked 52-character form.

Interfaces:
  :class:`DeviceID`, :class:`InvalidDeviceID`, :func:`luhn32`.

Invariants & Safety:
  - A :class:`DeviceID` always wraps exactly 32 bytes.
  - ``str(DeviceID.from_string(text)) == canonical(text)`` for any accepted
    spelling.
"""
from __future__ import annotations

import base64
import hashlib
from functools import total_ordering
from typing import Any

from pydantic_core import core_schema


DEVICE_ID_LENGTH = 32
LUHN_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_TYPO_FIXES = str.maketrans({"0": "O", "1": "I", "8": "B"})


class InvalidDeviceID(ValueError):
    """Raised when text or bytes cannot be interpreted as a device identity."""


def luhn32(text: str) -> str:
    """Return the Luhn mod-32 check character for ``text``.

    Raises:
      InvalidDeviceID: If ``text`` contains characters outside the base32
      alphabet.
    """

    factor = 1
    total = 0
    modulus = len(LUHN_ALPHABET)
    for char in text:
        codepoint = LUHN_ALPHABET.find(char)
        if codepoint < 0:
            raise InvalidDeviceID(f"digit {char!r} not valid in alphabet")
        addend = factor * codepoint
        factor = 1 if factor == 2 else 2
        total += addend // modulus + addend % modulus
    return LUHN_ALPHABET[(modulus - total % modulus) % modulus]


def _luhnify(text: str) -> str:
    groups = [text[i : i + 13] for i in range(0, 52, 13)]
    return "".join(group + luhn32(group) for group in groups)


def _unluhnify(text: str) -> str:
    result = []
    for i in range(4):
        group = text[i * 14 : i * 14 + 13]
        check = text[i * 14 + 13]
        if luhn32(group) != check:
            raise InvalidDeviceID(f"check character mismatch in {text!r}")
        result.append(group)
    return "".join(result)


def _chunkify(text: str) -> str:
    return "-".join(text[i : i + 7] for i in range(0, len(text), 7))


@total_ordering
class DeviceID:
    """A peer identity: the SHA-256 digest of its certificate."""

    __slots__ = ("_raw",)

    def __init__(self, raw: bytes):
        if len(raw) != DEVICE_ID_LENGTH:
            raise InvalidDeviceID(f"device ID must be {DEVICE_ID_LENGTH} bytes, got {len(raw)}")
        self._raw = bytes(raw)

    @classmethod
    def from_cert(cls, certificate: bytes) -> "DeviceID":
        """Derive the identity of the device presenting ``certificate`` (DER bytes)."""

        return cls(hashlib.sha256(certificate).digest())

    @classmethod
    def from_string(cls, text: str) -> "DeviceID":
        """Parse any accepted spelling of a device identity.

        Raises:
          InvalidDeviceID: On a wrong length, a bad check character or
          characters outside the base32 alphabet.
        """

        cleaned = text.strip("=").upper().translate(_TYPO_FIXES)
        cleaned = cleaned.replace("-", "").replace(" ", "")
        if len(cleaned) == 56:
            cleaned = _unluhnify(cleaned)
        elif len(cleaned) != 52:
            raise InvalidDeviceID(f"device ID {text!r} has incorrect length")
        try:
            raw = base64.b32decode(cleaned + "====")
        except ValueError as exc:
            raise InvalidDeviceID(f"device ID {text!r} is not valid base32") from exc
        return cls(raw)

    @property
    def raw(self) -> bytes:
        return self._raw

    def short(self) -> str:
        """First block of the canonical form, for log lines."""

        return str(self)[:7]

    def __str__(self) -> str:
        encoded = base64.b32encode(self._raw).decode("ascii").rstrip("=")
        return _chunkify(_luhnify(encoded))

    def __repr__(self) -> str:
        return f"DeviceID({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DeviceID):
            return NotImplemented
        return self._raw == other._raw

    def __lt__(self, other: "DeviceID") -> bool:
        if not isinstance(other, DeviceID):
            return NotImplemented
        return self._raw < other._raw

    def __hash__(self) -> int:
        return hash(self._raw)

    @classmethod
    def _coerce(cls, value: Any) -> "DeviceID":
        if isinstance(value, DeviceID):
            return value
        if isinstance(value, str):
            return cls.from_string(value)
        if isinstance(value, (bytes, bytearray)):
            return cls(bytes(value))
        raise InvalidDeviceID(f"cannot interpret {type(value).__name__} as a device ID")

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._coerce,
            serialization=core_schema.to_string_ser_schema(),
        )
