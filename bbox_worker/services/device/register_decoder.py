"""
Register Decoder

Turns 16-bit holding-register words into 32-bit IEEE-754 floats.

Byte order is fixed: each word is serialized little-endian, the first
word's bytes come before the second's, and the four bytes are read as a
little-endian single. That is the low-word-first ("CDAB") layout, and it
does not depend on the host, so [0x0000, 0x3F80] decodes to 1.0 everywhere.
"""

import struct
from typing import Callable, Iterable, Iterator

from bbox_worker.common.exceptions import DecodeError
from bbox_worker.common.logging_setup import get_service_logger

logger = get_service_logger("device.decoder")

WORD_PAIR = struct.Struct("<HH")
FLOAT32 = struct.Struct("<f")


def _log_decode_error(error: DecodeError) -> None:
    logger.error(error.message, extra={"index": error.index, "word": error.word})


def pair_to_float(first: int, second: int) -> float:
    """
    Decode one register pair.

    Raises:
        DecodeError: a word is outside 0..0xFFFF
    """
    try:
        return FLOAT32.unpack(WORD_PAIR.pack(first, second))[0]
    except struct.error as e:
        raise DecodeError(f"Invalid register pair ({first}, {second}): {e}") from e


def iter_float32(
    registers: Iterable[int],
    on_error: Callable[[DecodeError], None] | None = None,
) -> Iterator[float]:
    """
    Lazily decode consecutive register pairs into floats.

    NaN and infinity bit patterns are passed through unchanged. A trailing
    unpaired word produces no value; a DecodeError for it is handed to
    on_error (logged when on_error is None).

    Args:
        registers: Register words in device order
        on_error: Callback receiving the DecodeError for an unpaired word
    """
    report = on_error or _log_decode_error
    words = iter(registers)
    index = 0

    for first in words:
        second = next(words, None)
        if second is None:
            report(DecodeError(
                "Insufficient data to form a pair of register values",
                index=index,
                word=first,
            ))
            return
        yield pair_to_float(first, second)
        index += 2


def decode_float32(registers: Iterable[int]) -> tuple[list[float], list[DecodeError]]:
    """Eager variant of iter_float32 returning (values, errors)."""
    errors: list[DecodeError] = []
    values = list(iter_float32(registers, on_error=errors.append))
    return values, errors
