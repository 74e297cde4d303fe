"""Functions that are used by both roles of the comparison protocols."""

from __future__ import annotations

from secrets import choice
from typing import Any, List


def to_bits(integer: int, bit_length: int) -> List[int]:
    """
    Convert a given non-negative integer to a list of bits, with the least significant bit
    first, and the most significant bit last.

    :param integer: Integer to be converted to bits.
    :param bit_length: Amount of bits to which the integer should be converted.
    :raise ValueError: When the integer does not fit in bit_length bits.
    :return: Bit representation of the integer in bit_length bits.
    """
    if not 0 <= integer < (1 << bit_length):
        raise ValueError(f"{integer} does not fit in {bit_length} bits.")
    return [(integer >> bit_index) & 1 for bit_index in range(bit_length)]


def from_bits(bits: List[int]) -> int:
    """
    Convert a list of bits, least significant bit first, to a non-negative integer.

    :param bits: List of bits, least significant bit first.
    :return: Integer representation of the bits.
    """
    integer = 0
    for bit in reversed(bits):
        integer = (integer << 1) | bit
    return integer


def shuffle(values: List[Any]) -> List[Any]:
    """
    Shuffle the list in random order.

    :param values: List of objects that is to be shuffled.
    :return: Shuffled copy of the input list.
    """
    values = values.copy()
    shuffled_values = []
    while values:
        index = choice(range(len(values)))
        shuffled_values.append(values.pop(index))
    return shuffled_values
