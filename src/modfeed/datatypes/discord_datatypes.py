"""
Type-safe wrapper classes for Discord identifiers.

Snowflakes are 64-bit integers that Discord also transmits as strings. The
wrappers keep guild, channel, role and message ids from being mixed up while
still comparing equal to the raw int/str forms stored in SQLite.
"""

from __future__ import annotations

from typing import Union


class _Snowflake:
    """
    Shared behaviour for the snowflake wrappers.

    Attributes:
        _value (str): The snowflake ID stored as a string for JSON parity.

    Example:
        >>> gid = GuildID(123456789012345678)
        >>> gid.to_int()
        123456789012345678
        >>> GuildID("123456789012345678") == 123456789012345678
        True
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "_Snowflake"]) -> None:
        if isinstance(value, _Snowflake):
            self._value = value._value
        elif isinstance(value, bool):
            raise ValueError(f"Cannot create {type(self).__name__} from bool")
        elif isinstance(value, int):
            self._value = str(value)
        elif isinstance(value, str):
            # Validate that it's a valid integer string
            self._value = str(int(value.strip()))
        else:
            raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}: {value}")

    @classmethod
    def from_int(cls, value: int):
        return cls(value)

    @classmethod
    def optional(cls, value: Union[str, int, "_Snowflake", None]):
        """Wrap ``value`` unless it is None (nullable DB columns)."""
        return None if value is None else cls(value)

    def to_int(self) -> int:
        """Convert to an integer for Discord API calls and SQLite."""
        return int(self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, _Snowflake):
            return type(self) is type(other) and self._value == other._value
        if isinstance(other, str):
            return self._value == other
        if isinstance(other, int) and not isinstance(other, bool):
            return self._value == str(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)

    def __lt__(self, other: "_Snowflake") -> bool:
        return self.to_int() < other.to_int()


class GuildID(_Snowflake):
    """Snowflake of a guild (a subscribing community)."""

    __slots__ = ()


class ChannelID(_Snowflake):
    """Snowflake of a text channel receiving update notifications."""

    __slots__ = ()


class RoleID(_Snowflake):
    """Snowflake of a role mentioned in update notifications."""

    __slots__ = ()


class MessageID(_Snowflake):
    """Snowflake of a message the bot has sent."""

    __slots__ = ()
