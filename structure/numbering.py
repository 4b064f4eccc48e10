"""Human-facing ordinals: Part III, Chapter 4, Section B."""

from enum import Enum

from errors import InvalidArgumentError
from models.book_models import Level


class NumberStyle(str, Enum):
    ROMAN = "roman"
    NUMERIC = "numeric"
    ALPHA = "alpha"
    BULLET = "bullet"


LEVEL_NUMBER_STYLES = {
    Level.PART: NumberStyle.ROMAN,
    Level.CHAPTER: NumberStyle.NUMERIC,
    Level.SECTION: NumberStyle.ALPHA,
}

_ROMAN_VALUES = (
    (1000, "M"), (900, "CM"), (500, "D"), (400, "CD"),
    (100, "C"), (90, "XC"), (50, "L"), (40, "XL"),
    (10, "X"), (9, "IX"), (5, "V"), (4, "IV"), (1, "I"),
)


def to_roman(number: int) -> str:
    if number < 1:
        raise InvalidArgumentError(f"Cannot format {number} as a roman numeral")
    result = []
    for value, symbol in _ROMAN_VALUES:
        while number >= value:
            result.append(symbol)
            number -= value
    return "".join(result)


def to_alpha(number: int) -> str:
    """1 -> A, 26 -> Z, 27 -> AA."""
    if number < 1:
        raise InvalidArgumentError(f"Cannot format {number} alphabetically")
    result = ""
    while number > 0:
        number -= 1
        result = chr(ord("A") + number % 26) + result
        number //= 26
    return result


def format_ordinal(position: int, style: NumberStyle = NumberStyle.NUMERIC) -> str:
    style = NumberStyle(style)
    if style == NumberStyle.ROMAN:
        return to_roman(position)
    if style == NumberStyle.ALPHA:
        return to_alpha(position)
    if style == NumberStyle.BULLET:
        return "•"
    return str(position)
