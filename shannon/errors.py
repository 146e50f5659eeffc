#  Copyright (c) Kuba Szczodrzyński 2021-5-5.

"""Exceptions raised by the Shannon cipher engine."""


class ShannonError(Exception):
    """Base exception for the Shannon cipher engine."""


class NotKeyedError(ShannonError):
    """Engine was used before a key was set."""


class MessageFinishedError(ShannonError):
    """Message was already finished; set a new nonce or key first."""


class BufferSizeError(ShannonError, ValueError):
    """Output buffer is shorter than the input."""


class MacMismatchError(ShannonError):
    """Computed MAC tag does not match the expected one."""
