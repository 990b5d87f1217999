#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Fixed-width 128-bit fingerprint value.
"""

import struct
from dataclasses import dataclass
from typing import Tuple

from ..config import FINGERPRINT_BITS, FINGERPRINT_WORDS

_WORD_MASK = 0xFFFFFFFF
_BYTES = FINGERPRINT_BITS // 8
_LAYOUT = struct.Struct(">%dI" % FINGERPRINT_WORDS)


@dataclass(frozen=True)
class Fingerprint:
    """Four ordered unsigned 32-bit words; word 0 holds the most significant bits."""
    words: Tuple[int, int, int, int]

    def __post_init__(self):
        words = tuple(self.words)
        if len(words) != FINGERPRINT_WORDS:
            raise ValueError(f"fingerprint needs {FINGERPRINT_WORDS} words, got {len(words)}")
        for w in words:
            if not isinstance(w, int) or w < 0 or w > _WORD_MASK:
                raise ValueError(f"fingerprint word out of 32-bit range: {w!r}")
        object.__setattr__(self, "words", words)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Fingerprint":
        if len(data) != _BYTES:
            raise ValueError(f"fingerprint needs {_BYTES} bytes, got {len(data)}")
        return cls(_LAYOUT.unpack(data))

    @classmethod
    def from_int(cls, value: int) -> "Fingerprint":
        if value < 0 or value.bit_length() > FINGERPRINT_BITS:
            raise ValueError(f"value does not fit in {FINGERPRINT_BITS} bits")
        return cls.from_bytes(value.to_bytes(_BYTES, "big"))

    @classmethod
    def from_hex(cls, text: str) -> "Fingerprint":
        s = text.strip().lower()
        if s.startswith("0x"):
            s = s[2:]
        if len(s) != _BYTES * 2:
            raise ValueError(f"fingerprint hex must be {_BYTES * 2} digits, got {len(s)}")
        return cls.from_bytes(bytes.fromhex(s))

    def to_bytes(self) -> bytes:
        return _LAYOUT.pack(*self.words)

    def hex(self) -> str:
        return self.to_bytes().hex()

    def __int__(self) -> int:
        return int.from_bytes(self.to_bytes(), "big")

    def distance(self, other: "Fingerprint") -> int:
        """Hamming distance between two fingerprints."""
        return bin(int(self) ^ int(other)).count("1")

    def __str__(self) -> str:
        return self.hex()
