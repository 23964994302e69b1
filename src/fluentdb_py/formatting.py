"""Culture-invariant rendering of .NET style format strings.

Values written through a format specifier match what .NET services write
for the same specifier, so items shared with them sort and compare
identically in DynamoDB. Only the invariant culture is modelled.
"""

from __future__ import annotations

import math
import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, localcontext

from .errors import FormatError

type Number = int | float | Decimal

_STANDARD_NUMERIC = re.compile(r"^([A-Za-z])(\d{0,9})$")

_DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

_CURRENCY_SYMBOL = "¤"
_PERMILLE = "‰"


def _invalid(spec: str) -> FormatError:
    return FormatError(f"Format specifier '{spec}' was invalid.")


# Numbers


def _to_decimal(value: Number) -> Decimal:
    # floats convert exactly; rounding happens later, away from zero like .NET
    return value if isinstance(value, Decimal) else Decimal(value)


def _shortest_decimal(value: float) -> Decimal:
    return Decimal(repr(value))


def _non_finite(value: Number) -> str | None:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
    if isinstance(value, Decimal) and not value.is_finite():
        raise FormatError(f"Non-finite decimal {value} cannot be formatted")
    return None


def _round_places(d: Decimal, places: int) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = max(64, len(d.as_tuple().digits) + places + 8, d.adjusted() + places + 8)
        return d.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def _plain(d: Decimal) -> str:
    return format(d, "f")


def _group(int_digits: str) -> str:
    parts: list[str] = []
    while len(int_digits) > 3:
        parts.insert(0, int_digits[-3:])
        int_digits = int_digits[:-3]
    parts.insert(0, int_digits)
    return ",".join(parts)


def _fixed(d: Decimal, places: int, *, grouped: bool) -> tuple[bool, str]:
    rounded = _round_places(abs(d), places)
    text = _plain(rounded)
    int_part, _, frac_part = text.partition(".")
    if grouped:
        int_part = _group(int_part)
    body = f"{int_part}.{frac_part}" if places > 0 else int_part
    negative = d < 0 and rounded != 0
    return negative, body


def _scientific_parts(d: Decimal, digits_after_point: int) -> tuple[Decimal, int]:
    """Return a mantissa in [1, 10) rounded to the given places, and its exponent."""

    if d == 0:
        return _round_places(Decimal(0), digits_after_point), 0
    exp = d.adjusted()
    mantissa = _round_places(d.scaleb(-exp), digits_after_point)
    if mantissa >= 10:
        exp += 1
        mantissa = _round_places(d.scaleb(-exp), digits_after_point)
    return mantissa, exp


def _exponential(d: Decimal, precision: int, letter: str) -> str:
    mantissa, exp = _scientific_parts(abs(d), precision)
    sign = "-" if d < 0 else ""
    exp_sign = "+" if exp >= 0 else "-"
    return f"{sign}{_plain(mantissa)}{letter}{exp_sign}{abs(exp):03d}"


def _trim_fraction(text: str) -> str:
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _general_from_digits(d: Decimal, threshold: int, letter: str) -> str:
    """Render an already-rounded decimal in general notation."""

    negative = d < 0
    d = abs(d)
    if d == 0:
        return "0"
    exp = d.adjusted()
    if -5 < exp < threshold:
        body = _trim_fraction(_plain(d))
    else:
        mantissa = _trim_fraction(_plain(d.scaleb(-exp)))
        exp_sign = "+" if exp >= 0 else "-"
        body = f"{mantissa}{letter}{exp_sign}{abs(exp):02d}"
    return f"-{body}" if negative else body


def _general(value: Number, precision: int | None, letter: str) -> str:
    if not precision:
        if isinstance(value, float):
            return _general_from_digits(_shortest_decimal(value), 15, letter)
        return default_number_text(value)

    d = _to_decimal(value)
    if d == 0:
        return "0"
    mantissa, exp = _scientific_parts(abs(d), precision - 1)
    rounded = mantissa.scaleb(exp)
    if d < 0:
        rounded = -rounded
    return _general_from_digits(rounded, precision, letter)


def _twos_complement(value: int, spec: str) -> int:
    if value >= 0:
        return value
    if value >= -(2**31):
        return value + 2**32
    if value >= -(2**63):
        return value + 2**64
    raise FormatError(f"Value {value} is out of range for format specifier '{spec}'")


def default_number_text(value: Number) -> str:
    """Invariant text used when no format is given."""

    special = _non_finite(value)
    if special is not None:
        return special
    if isinstance(value, int):
        return str(value)
    if isinstance(value, Decimal):
        return _plain(value)
    return _general_from_digits(_shortest_decimal(value), 15, "E")


def _format_standard(value: Number, letter: str, precision: int | None, spec: str) -> str:
    upper = letter.upper()

    if upper in {"D", "X", "B"}:
        if not isinstance(value, int):
            raise FormatError(
                f"Format specifier '{spec}' is only valid for integral types, got {type(value).__name__}"
            )
        width = precision or 0
        if upper == "D":
            digits = str(abs(value)).rjust(width, "0")
            return f"-{digits}" if value < 0 else digits
        raw = _twos_complement(value, spec)
        if upper == "X":
            text = format(raw, "X" if letter == "X" else "x")
        else:
            text = format(raw, "b")
        return text.rjust(width, "0")

    special = _non_finite(value)
    if special is not None:
        return special

    d = _to_decimal(value)
    if upper == "F":
        negative, body = _fixed(d, 2 if precision is None else precision, grouped=False)
        return f"-{body}" if negative else body
    if upper == "N":
        negative, body = _fixed(d, 2 if precision is None else precision, grouped=True)
        return f"-{body}" if negative else body
    if upper == "C":
        negative, body = _fixed(d, 2 if precision is None else precision, grouped=True)
        return f"({_CURRENCY_SYMBOL}{body})" if negative else f"{_CURRENCY_SYMBOL}{body}"
    if upper == "P":
        negative, body = _fixed(d * 100, 2 if precision is None else precision, grouped=True)
        return f"-{body} %" if negative else f"{body} %"
    if upper == "E":
        return _exponential(d, 6 if precision is None else precision, letter)
    if upper == "G":
        return _general(value, precision, "E" if letter == "G" else "e")
    if upper == "R":
        return _general(value, None, "E")
    raise _invalid(spec)


@dataclass
class _NumericSection:
    int_tokens: list[tuple[str, str]]
    frac_tokens: list[tuple[str, str]]
    has_point: bool
    grouping: bool
    scale: int
    multiplier: int
    exponent: tuple[str, bool, int] | None
    trailing: list[tuple[str, str]]


def _split_sections(spec: str) -> list[str]:
    sections: list[str] = []
    current: list[str] = []
    quote: str | None = None
    i = 0
    while i < len(spec):
        ch = spec[i]
        if quote is not None:
            current.append(ch)
            if ch == quote:
                quote = None
        elif ch in {"'", '"'}:
            quote = ch
            current.append(ch)
        elif ch == "\\" and i + 1 < len(spec):
            current.append(spec[i : i + 2])
            i += 1
        elif ch == ";":
            sections.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1
    sections.append("".join(current))
    return sections[:3]


def _parse_section(section: str) -> _NumericSection:
    int_tokens: list[tuple[str, str]] = []
    frac_tokens: list[tuple[str, str]] = []
    trailing: list[tuple[str, str]] = []
    has_point = False
    multiplier = 1
    exponent: tuple[str, bool, int] | None = None

    def target() -> list[tuple[str, str]]:
        if exponent is not None:
            return trailing
        return frac_tokens if has_point else int_tokens

    i = 0
    while i < len(section):
        ch = section[i]
        if ch == "\\" and i + 1 < len(section):
            target().append(("lit", section[i + 1]))
            i += 2
            continue
        if ch in {"'", '"'}:
            end = section.find(ch, i + 1)
            end = len(section) if end < 0 else end
            target().append(("lit", section[i + 1 : end]))
            i = end + 1
            continue
        if ch in {"0", "#"} and exponent is None:
            target().append(("digit", ch))
        elif ch == "." and exponent is None:
            if not has_point:
                has_point = True
        elif ch == "," and not has_point and exponent is None:
            int_tokens.append(("comma", ","))
        elif ch == "%":
            multiplier *= 100
            target().append(("lit", "%"))
        elif ch == _PERMILLE:
            multiplier *= 1000
            target().append(("lit", _PERMILLE))
        elif ch in {"E", "e"} and exponent is None:
            j = i + 1
            always_sign = False
            if j < len(section) and section[j] in {"+", "-"}:
                always_sign = section[j] == "+"
                j += 1
            zeros = 0
            while j < len(section) and section[j] == "0":
                zeros += 1
                j += 1
            if zeros:
                exponent = (ch, always_sign, zeros)
                i = j
                continue
            target().append(("lit", ch))
        else:
            target().append(("lit", ch))
        i += 1

    grouping = False
    scale = 0
    digit_positions = [idx for idx, tok in enumerate(int_tokens) if tok[0] == "digit"]
    last_digit = digit_positions[-1] if digit_positions else -1
    first_digit = digit_positions[0] if digit_positions else -1
    cleaned: list[tuple[str, str]] = []
    for idx, tok in enumerate(int_tokens):
        if tok[0] != "comma":
            cleaned.append(tok)
            continue
        if idx > last_digit:
            scale += 1
        elif idx > first_digit:
            grouping = True
    return _NumericSection(
        int_tokens=cleaned,
        frac_tokens=frac_tokens,
        has_point=has_point,
        grouping=grouping,
        scale=scale,
        multiplier=multiplier,
        exponent=exponent,
        trailing=trailing,
    )


def _render_section(d: Decimal, section: _NumericSection, *, negative: bool) -> tuple[str, bool]:
    d = abs(d) * section.multiplier
    if section.scale:
        d = d.scaleb(-3 * section.scale)

    int_placeholders = [tok[1] for tok in section.int_tokens if tok[0] == "digit"]
    frac_placeholders = [tok[1] for tok in section.frac_tokens if tok[0] == "digit"]
    min_int = 0
    if "0" in int_placeholders:
        min_int = len(int_placeholders) - int_placeholders.index("0")
    min_frac = 0
    if "0" in frac_placeholders:
        min_frac = len(frac_placeholders) - frac_placeholders[::-1].index("0")

    exp_text = ""
    if section.exponent is not None:
        letter, always_sign, exp_digits = section.exponent
        shift = max(len(int_placeholders), 1)
        if d == 0:
            exp = 0
        else:
            exp = d.adjusted() - (shift - 1)
            mantissa = _round_places(d.scaleb(-exp), len(frac_placeholders))
            if mantissa >= Decimal(10) ** shift:
                exp += 1
        d = d.scaleb(-exp)
        sign = "-" if exp < 0 else ("+" if always_sign else "")
        exp_text = f"{letter}{sign}{str(abs(exp)).rjust(exp_digits, '0')}"

    rounded = _round_places(d, len(frac_placeholders))
    is_zero = rounded == 0
    int_str, _, frac_str = _plain(rounded).partition(".")
    if int_str == "0":
        int_str = ""
    int_str = int_str.rjust(min_int, "0")
    frac_str = frac_str.rstrip("0").ljust(min_frac, "0")

    out_int: list[str] = []
    remaining = list(int_str)
    placed = 0
    digit_tokens_seen = 0
    total_digits = len(int_placeholders)
    for kind, text in reversed(section.int_tokens):
        if kind == "lit":
            out_int.append(text)
            continue
        digit_tokens_seen += 1
        take = len(remaining) if digit_tokens_seen == total_digits else min(1, len(remaining))
        for _ in range(take):
            ch = remaining.pop()
            if section.grouping and placed and placed % 3 == 0:
                out_int.append(",")
            out_int.append(ch)
            placed += 1
    if remaining and frac_placeholders:
        out_int.extend(reversed(remaining))
    int_text = "".join(reversed(out_int))

    frac_out: list[str] = []
    frac_index = 0
    for kind, text in section.frac_tokens:
        if kind == "lit":
            frac_out.append(text)
        elif frac_index < len(frac_str):
            frac_out.append(frac_str[frac_index])
            frac_index += 1
    frac_text = "".join(frac_out)
    if frac_str:
        frac_text = "." + frac_text

    trailing = "".join(text for _, text in section.trailing)
    body = f"{int_text}{frac_text}{exp_text}{trailing}"
    if negative and not is_zero:
        body = f"-{body}"
    return body, is_zero


def _format_custom(value: Number, spec: str) -> str:
    special = _non_finite(value)
    if special is not None:
        return special

    d = _to_decimal(value)
    sections = [_parse_section(s) for s in _split_sections(spec)]
    if d < 0 and len(sections) >= 2 and (sections[1].int_tokens or sections[1].frac_tokens):
        text, _ = _render_section(d, sections[1], negative=False)
        return text
    if d == 0 and len(sections) == 3:
        text, _ = _render_section(d, sections[2], negative=False)
        return text
    text, is_zero = _render_section(d, sections[0], negative=d < 0)
    if is_zero and len(sections) == 3 and d != 0:
        text, _ = _render_section(Decimal(0), sections[2], negative=False)
    return text


def format_number(value: Number, spec: str | None) -> str:
    if not spec:
        return default_number_text(value)
    m = _STANDARD_NUMERIC.match(spec)
    if m:
        precision = int(m.group(2)) if m.group(2) else None
        return _format_standard(value, m.group(1), precision, spec)
    return _format_custom(value, spec)


# Dates and times

_STANDARD_DATETIME: dict[str, str] = {
    "d": "MM/dd/yyyy",
    "D": "dddd, dd MMMM yyyy",
    "f": "dddd, dd MMMM yyyy HH:mm",
    "F": "dddd, dd MMMM yyyy HH:mm:ss",
    "g": "MM/dd/yyyy HH:mm",
    "G": "MM/dd/yyyy HH:mm:ss",
    "M": "MMMM dd",
    "m": "MMMM dd",
    "O": "yyyy'-'MM'-'dd'T'HH':'mm':'ss'.'fffffffK",
    "o": "yyyy'-'MM'-'dd'T'HH':'mm':'ss'.'fffffffK",
    "R": "ddd, dd MMM yyyy HH':'mm':'ss 'GMT'",
    "r": "ddd, dd MMM yyyy HH':'mm':'ss 'GMT'",
    "s": "yyyy'-'MM'-'dd'T'HH':'mm':'ss",
    "t": "HH:mm",
    "T": "HH:mm:ss",
    "u": "yyyy'-'MM'-'dd HH':'mm':'ss'Z'",
    "U": "dddd, dd MMMM yyyy HH:mm:ss",
    "Y": "yyyy MMMM",
    "y": "yyyy MMMM",
}

_TO_UTC = frozenset({"R", "r", "u", "U"})


def _offset_of(value: datetime) -> timedelta | None:
    if value.tzinfo is None:
        return None
    return value.utcoffset()


def _format_offset(offset: timedelta, width: int) -> str:
    total_minutes = int(offset.total_seconds() // 60)
    sign = "-" if total_minutes < 0 else "+"
    hours, minutes = divmod(abs(total_minutes), 60)
    if width == 1:
        return f"{sign}{hours}"
    if width == 2:
        return f"{sign}{hours:02d}"
    return f"{sign}{hours:02d}:{minutes:02d}"


def _local_offset(value: datetime) -> timedelta:
    offset = value.astimezone().utcoffset()
    return offset if offset is not None else timedelta(0)


def _render_datetime(value: datetime, pattern: str) -> str:
    out: list[str] = []
    ticks = f"{value.microsecond:06d}0"
    i = 0
    n = len(pattern)
    while i < n:
        ch = pattern[i]
        if ch in {"'", '"'}:
            end = pattern.find(ch, i + 1)
            if end < 0:
                raise FormatError(f"Unterminated quoted string in format '{pattern}'")
            out.append(pattern[i + 1 : end])
            i = end + 1
            continue
        if ch == "\\":
            if i + 1 >= n:
                raise FormatError(f"Invalid escape at end of format '{pattern}'")
            out.append(pattern[i + 1])
            i += 2
            continue
        if ch == "%":
            i += 1
            continue

        run = 1
        while i + run < n and pattern[i + run] == ch:
            run += 1

        if ch == "d":
            if run == 1:
                out.append(str(value.day))
            elif run == 2:
                out.append(f"{value.day:02d}")
            elif run == 3:
                out.append(_DAY_NAMES[value.weekday()][:3])
            else:
                out.append(_DAY_NAMES[value.weekday()])
        elif ch in {"f", "F"}:
            if run > 7:
                raise FormatError(f"Input string '{pattern}' was not in a correct format.")
            digits = ticks[:run]
            if ch == "F":
                digits = digits.rstrip("0")
                if not digits and out and out[-1].endswith("."):
                    out[-1] = out[-1][:-1]
            out.append(digits)
        elif ch == "g":
            out.append("A.D.")
        elif ch == "h":
            hour = value.hour % 12 or 12
            out.append(str(hour) if run == 1 else f"{hour:02d}")
        elif ch == "H":
            out.append(str(value.hour) if run == 1 else f"{value.hour:02d}")
        elif ch == "K":
            offset = _offset_of(value)
            if offset is None:
                out.append("")
            elif offset == timedelta(0):
                out.append("Z")
            else:
                out.append(_format_offset(offset, 3))
            run = 1
        elif ch == "m":
            out.append(str(value.minute) if run == 1 else f"{value.minute:02d}")
        elif ch == "M":
            if run == 1:
                out.append(str(value.month))
            elif run == 2:
                out.append(f"{value.month:02d}")
            elif run == 3:
                out.append(_MONTH_NAMES[value.month - 1][:3])
            else:
                out.append(_MONTH_NAMES[value.month - 1])
        elif ch == "s":
            out.append(str(value.second) if run == 1 else f"{value.second:02d}")
        elif ch == "t":
            marker = "AM" if value.hour < 12 else "PM"
            out.append(marker[0] if run == 1 else marker)
        elif ch == "y":
            if run == 1:
                out.append(str(value.year % 100))
            elif run == 2:
                out.append(f"{value.year % 100:02d}")
            else:
                out.append(str(value.year).rjust(run, "0"))
        elif ch == "z":
            offset = _offset_of(value)
            if offset is None:
                offset = _local_offset(value)
            out.append(_format_offset(offset, min(run, 3)))
        else:
            out.append(ch * run)
        i += run
    return "".join(out)


def format_datetime(value: datetime | date | time, spec: str | None = None) -> str:
    if isinstance(value, datetime):
        moment = value
        default = "o"
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day)
        default = "yyyy'-'MM'-'dd"
    else:
        moment = datetime(1, 1, 1, value.hour, value.minute, value.second, value.microsecond, value.tzinfo)
        default = "HH':'mm':'ss'.'fffffff"

    fmt = spec or default
    if len(fmt) == 1:
        pattern = _STANDARD_DATETIME.get(fmt)
        if pattern is None:
            raise _invalid(fmt)
        if fmt in _TO_UTC and moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        if fmt in {"o", "O"} and not isinstance(value, datetime):
            pattern = default
        return _render_datetime(moment, pattern)
    return _render_datetime(moment, fmt)


# GUIDs


def format_uuid(value: uuid.UUID, spec: str | None = None) -> str:
    letter = (spec or "D").upper()
    if len(spec or "D") != 1 or letter not in {"N", "D", "B", "P", "X"}:
        raise FormatError(
            'Format string can be only "D", "d", "N", "n", "P", "p", "B", "b", "X" or "x".'
        )
    text = str(value)
    if letter == "N":
        return value.hex
    if letter == "D":
        return text
    if letter == "B":
        return "{" + text + "}"
    if letter == "P":
        return "(" + text + ")"
    raw = value.hex
    tail = ",".join(f"0x{raw[i : i + 2]}" for i in range(16, 32, 2))
    return f"{{0x{raw[0:8]},0x{raw[8:12]},0x{raw[12:16]},{{{tail}}}}}"
