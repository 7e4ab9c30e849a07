"""Compound command-line options of the form 'key=value; key=value'."""

from __future__ import annotations

import os
import re
from datetime import timedelta
from pathlib import Path

_TRUE = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE = frozenset({"0", "f", "F", "FALSE", "false", "False"})

_NS = 1
_DURATION_UNITS = {
    "ns": _NS,
    "us": 1000,
    "\u00b5s": 1000,
    "\u03bcs": 1000,
    "ms": 1000**2,
    "s": 1000**3,
    "m": 60 * 1000**3,
    "h": 3600 * 1000**3,
}
_DURATION_PART = re.compile(r"(\d*)(?:\.(\d*))?([^\d.]+)")
_OCTAL = re.compile(r"0_?[0-7](?:_?[0-7])*")
_INT_BODY = re.compile(r"[0-9a-zA-Z_]+")


class SuperFlagError(ValueError):
    """A flag string or one of its values could not be parsed."""


def parse_flag(flag: str) -> dict[str, str]:
    """Parse 'k=v; k=v' into a dict; keys are lower-cased with '_' turned into '-'."""
    kvm: dict[str, str] = {}
    for kv in flag.split(";"):
        if not kv.strip():
            continue
        key, sep, value = kv.partition("=")
        key = key.strip()
        if not sep:
            raise SuperFlagError(f"superflag: missing value for '{key}' in flag: {flag}")
        kvm[key.lower().replace("_", "-")] = value.strip()
    return kvm


def _parse_int(text: str, bits: int, signed: bool) -> int:
    """Parse an integer the way strconv does with base 0, checking its range."""
    body = text
    negative = False
    if body[:1] in ("+", "-"):
        if not signed:
            raise ValueError(f"invalid syntax: {text!r}")
        negative = body[0] == "-"
        body = body[1:]
    if not body or not _INT_BODY.fullmatch(body):
        raise ValueError(f"invalid syntax: {text!r}")
    if len(body) > 1 and _OCTAL.fullmatch(body):
        value = int(body[1:].replace("_", ""), 8)
    else:
        value = int(body, 0)
    if negative:
        value = -value
    if signed:
        low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    else:
        low, high = 0, (1 << bits) - 1
    if not low <= value <= high:
        raise ValueError(f"value out of range: {text!r}")
    return value


def _parse_duration_ns(text: str) -> int:
    """Parse a duration such as '1h30m' or '1.5s' into nanoseconds."""
    s = text
    negative = False
    if s[:1] in ("+", "-"):
        negative = s[0] == "-"
        s = s[1:]
    if s == "0":
        return 0
    if not s:
        raise ValueError(f"invalid duration {text!r}")
    total = 0
    pos = 0
    while pos < len(s):
        m = _DURATION_PART.match(s, pos)
        if m is None:
            raise ValueError(f"invalid duration {text!r}")
        whole, frac, unit = m.groups()
        if not whole and not frac:
            raise ValueError(f"invalid duration {text!r}")
        scale = _DURATION_UNITS.get(unit)
        if scale is None:
            raise ValueError(f"unknown unit {unit!r} in duration {text!r}")
        total += int(whole or "0") * scale
        if frac:
            total += int(frac) * scale // 10 ** len(frac)
        pos = m.end()
    if total > (1 << 63) - 1:
        raise ValueError(f"invalid duration {text!r}")
    return -total if negative else total


def _ns_to_timedelta(ns: int) -> timedelta:
    seconds, rem = divmod(ns, 1000**3)
    return timedelta(seconds=seconds, microseconds=rem // 1000)


def expand_path(path: str) -> str:
    """Expand a leading '~' to the home directory and make the path absolute."""
    if not path:
        return ""
    separators = {os.sep, os.altsep} - {None}
    if path[0] == "~" and (len(path) == 1 or path[1] in separators):
        try:
            home = str(Path.home())
        except RuntimeError as exc:
            raise SuperFlagError(f"Failed to get the home directory of the user: {exc}") from exc
        rest = path[1:].lstrip("".join(separators))
        path = os.path.join(home, rest)
    return os.path.abspath(path)


class SuperFlag:
    """Options parsed from a 'key=value; key=value' string."""

    def __init__(self, flag: str = "") -> None:
        self._m = parse_flag(flag)

    def __str__(self) -> str:
        return "; ".join(f"{k}={v}" for k, v in self._m.items())

    def merge_and_check_default(self, flag: str) -> SuperFlag:
        """Fill missing options from the defaults in flag; unknown options are an error."""
        defaults = parse_flag(flag)
        unknown = [k for k in self._m if k not in defaults]
        if unknown:
            raise SuperFlagError(
                f"superflag: found invalid options: {self}.\nvalid options: {flag}"
            )
        for k, v in defaults.items():
            self._m.setdefault(k, v)
        return self

    def has(self, opt: str) -> bool:
        """True if opt is set to a non-empty value."""
        return self.get_string(opt) != ""

    def get_string(self, opt: str) -> str:
        """Value of opt, or '' if it is not set."""
        return self._m.get(opt, "")

    def _fail(self, val: str, kind: str, opt: str, exc: Exception) -> SuperFlagError:
        return SuperFlagError(
            f"Unable to parse {val} as {kind} for key: {opt}. Options: {self}: {exc}"
        )

    def get_duration(self, opt: str) -> timedelta:
        """Duration value of opt ('15m', '12h', '30d'); unparseable or unset gives zero."""
        val = self.get_string(opt)
        if not val:
            return timedelta(0)
        try:
            if "d" in val:
                return timedelta(days=_parse_int(val.replace("d", "", 1), 64, True))
            return _ns_to_timedelta(_parse_duration_ns(val))
        except (ValueError, OverflowError):
            return timedelta(0)

    def get_bool(self, opt: str) -> bool:
        """Boolean value of opt; unset gives False."""
        val = self.get_string(opt)
        if not val:
            return False
        if val in _TRUE:
            return True
        if val in _FALSE:
            return False
        raise self._fail(val, "bool", opt, ValueError("invalid syntax"))

    def get_float64(self, opt: str) -> float:
        """Float value of opt; unset gives 0.0."""
        val = self.get_string(opt)
        if not val:
            return 0.0
        try:
            return float(val)
        except ValueError as exc:
            raise self._fail(val, "float64", opt, exc) from exc

    def _get_int(self, opt: str, kind: str, bits: int, signed: bool) -> int:
        val = self.get_string(opt)
        if not val:
            return 0
        try:
            return _parse_int(val, bits, signed)
        except ValueError as exc:
            raise self._fail(val, kind, opt, exc) from exc

    def get_int64(self, opt: str) -> int:
        """Signed 64-bit value of opt; unset gives 0."""
        return self._get_int(opt, "int64", 64, True)

    def get_uint64(self, opt: str) -> int:
        """Unsigned 64-bit value of opt; unset gives 0."""
        return self._get_int(opt, "uint64", 64, False)

    def get_uint32(self, opt: str) -> int:
        """Unsigned 32-bit value of opt; unset gives 0."""
        return self._get_int(opt, "uint32", 32, False)

    def get_path(self, opt: str) -> str:
        """Value of opt as an absolute path with '~' expanded."""
        return expand_path(self.get_string(opt))


class SuperFlagHelp:
    """Builds '--help' text for a SuperFlag, listing options with their defaults."""

    def __init__(self, defaults: str = "") -> None:
        self._head = ""
        self._defaults = SuperFlag(defaults)
        self._flags: dict[str, str] = {}

    def head(self, head: str) -> SuperFlagHelp:
        """Set the first line of the help text."""
        self._head = head
        return self

    def flag(self, name: str, description: str) -> SuperFlagHelp:
        """Describe one option."""
        self._flags[name] = description
        return self

    def __str__(self) -> str:
        defaults = self._defaults._m
        default_lines = []
        other_lines = []
        for name, help_text in self._flags.items():
            line = f"    {name}={defaults.get(name, '')}; {help_text}\n"
            (default_lines if name in defaults else other_lines).append(line)
        dls = "".join(sorted(default_lines))
        ols = "".join(sorted(other_lines))
        if not defaults and not ols:
            dls = dls[:-1]
        if not defaults and len(ols) > 1:
            ols = ols[:-1]
        return self._head + "\n" + dls + ols