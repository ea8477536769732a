"""
Command line tokenizer and flag extractor.

Turns the argument text of a command into positional tokens plus a mapping of
typed ``--name=value`` flags::

    >>> tokenize("<@123> spamming links --days=3 --silent=true", FLAGS)
    (('<@123>', 'spamming', 'links'), {'days': 3, 'silent': True})

Flag values are unquoted alphanumerics or a double-quoted string. When a flag
repeats, the last occurrence wins. Flags a command never declared are ignored
unless the command declares its flag set closed.
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from ascbot.datatypes.command_datatypes import FlagSpec, FlagType, FlagValue
from ascbot.errors import ValidationError

FLAGS_REGEX = re.compile(r'--([a-z]+)=("[^"]*"|[0-9a-z]*)', re.IGNORECASE)

_TRUE_VALUES = {"true", "yes", "y", "1"}
_FALSE_VALUES = {"false", "no", "n", "0"}

_EXPECTED_TEXT = {
    FlagType.NUMBER: "a number",
    FlagType.BOOLEAN: "true or false",
    FlagType.STRING: "text",
}


def _coerce(spec: FlagSpec, raw: str) -> FlagValue:
    if spec.type is FlagType.STRING:
        return raw

    if spec.type is FlagType.BOOLEAN:
        lowered = raw.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValidationError("INVALID_FLAG_TYPE", spec.name, _EXPECTED_TEXT[spec.type])

    try:
        number = float(raw)
    except ValueError:
        raise ValidationError("INVALID_FLAG_TYPE", spec.name, _EXPECTED_TEXT[spec.type]) from None
    return int(number) if number.is_integer() else number


def extract_flags(
    text: str,
    specs: Iterable[FlagSpec] = (),
    *,
    closed: bool = False,
) -> Tuple[str, Mapping[str, FlagValue]]:
    """Pull every ``--name=value`` out of ``text``.

    Returns the text with flags removed and the coerced flag mapping.

    Raises:
        ValidationError: ``INVALID_FLAG_TYPE`` when a value does not coerce to the
            declared type, ``INVALID_FLAG`` when ``closed`` and an undeclared flag
            is present.
    """
    declared: Dict[str, FlagSpec] = {spec.name.lower(): spec for spec in specs}
    flags: Dict[str, FlagValue] = {}

    for match in FLAGS_REGEX.finditer(text):
        name = match.group(1).lower()
        raw = match.group(2)
        if raw.startswith('"') and raw.endswith('"') and len(raw) >= 2:
            raw = raw[1:-1]

        spec = declared.get(name)
        if spec is None:
            if closed:
                raise ValidationError("INVALID_FLAG", name, sorted(declared))
            continue
        flags[spec.name] = _coerce(spec, raw)

    remainder = FLAGS_REGEX.sub(" ", text)
    return remainder, MappingProxyType(flags)


def split_tokens(text: str) -> Tuple[str, ...]:
    return tuple(text.split())


def tokenize(
    text: str,
    specs: Iterable[FlagSpec] = (),
    *,
    closed: bool = False,
) -> Tuple[Tuple[str, ...], Mapping[str, FlagValue]]:
    """Split ``text`` into positional tokens and typed flags."""
    remainder, flags = extract_flags(text, specs, closed=closed)
    return split_tokens(remainder), flags


def split_overload(tokens: Sequence[str], leading: int) -> Tuple[Tuple[str, ...], str]:
    """Keep the first ``leading`` tokens positional and join the rest into one free-text token.

    Commands whose trailing argument is a reason use this instead of plain
    whitespace splitting.
    """
    head = tuple(tokens[:leading])
    rest = " ".join(tokens[leading:]).strip()
    return head, rest


def check_range(spec: FlagSpec, value: Optional[FlagValue], expected: str) -> None:
    """Raise ``INVALID_FLAG_TYPE`` naming ``expected`` when ``value`` is outside the bounds of ``spec``."""
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("INVALID_FLAG_TYPE", spec.name, expected)
    if spec.minimum is not None and value < spec.minimum:
        raise ValidationError("INVALID_FLAG_TYPE", spec.name, expected)
    if spec.maximum is not None and value > spec.maximum:
        raise ValidationError("INVALID_FLAG_TYPE", spec.name, expected)
