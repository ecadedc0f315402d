"""Regular expression stages built on the ``re`` module."""

import re
from typing import Optional, Union

from .cursor import Cursor
from .models import RegexMode


def _match_list(match) -> list:
    return [match.group(0), *match.groups()]


class RegexCursor(Cursor):
    """Applies a regular expression to each value (or key) of its upstream.

    MATCH keeps the elements that match; GET_MATCH keeps them too but exposes
    the list ``[whole match, group 1, ...]`` of the first match; ALL_MATCHES
    exposes one such list per match for every element; SPLIT keeps elements
    that split into more than one part and exposes the parts; REPLACE
    substitutes ``replacement`` in every element.

    With ``use_keys`` the key is the subject; REPLACE then rewrites the key
    and the other modes still expose their result as the value.
    """

    def __init__(self, upstream: Cursor, pattern: Union[str, "re.Pattern"],
                 mode: RegexMode = RegexMode.MATCH, replacement: Optional[str] = None,
                 use_keys: bool = False, flags: int = 0):
        self._upstream = upstream
        self._regex = re.compile(pattern, flags) if isinstance(pattern, str) else pattern
        self._mode = RegexMode(mode)
        self._replacement = replacement if replacement is not None else ""
        self._use_keys = use_keys
        self._checked = False
        self._value = None
        self._key = None

    def _transform(self, value, key):
        """Return ``(keep, value, key)`` for one element."""
        subject = key if self._use_keys else value
        subject = subject if isinstance(subject, str) else str(subject)
        mode = self._mode
        if mode is RegexMode.MATCH:
            return self._regex.search(subject) is not None, value, key
        if mode is RegexMode.GET_MATCH:
            match = self._regex.search(subject)
            if match is None:
                return False, None, None
            return True, _match_list(match), key
        if mode is RegexMode.ALL_MATCHES:
            return True, [_match_list(m) for m in self._regex.finditer(subject)], key
        if mode is RegexMode.SPLIT:
            parts = self._regex.split(subject)
            return len(parts) > 1, parts, key
        replaced = self._regex.sub(self._replacement, subject)
        if self._use_keys:
            return True, value, replaced
        return True, replaced, key

    def _settle(self):
        if self._checked:
            return
        upstream = self._upstream
        while upstream.valid():
            keep, value, key = self._transform(upstream.current(), upstream.key())
            if keep:
                self._value, self._key = value, key
                break
            upstream.advance()
        else:
            self._value = self._key = None
        self._checked = True

    def valid(self):
        self._settle()
        return self._upstream.valid()

    def current(self):
        self._settle()
        return self._value

    def key(self):
        self._settle()
        return self._key

    def advance(self):
        if self.valid():
            self._upstream.advance()
            self._checked = False

    def reset(self):
        self._upstream.reset()
        self._checked = False
