#  Copyright (c) Kuba Szczodrzyński 2021-5-5.

from .errors import (
    BufferSizeError,
    MacMismatchError,
    MessageFinishedError,
    NotKeyedError,
    ShannonError,
)
from .shannon import FOLD, INITKONST, KEYP, MAC_LENGTH, N, Shannon

__all__ = [
    "Shannon",
    "ShannonError",
    "NotKeyedError",
    "MessageFinishedError",
    "BufferSizeError",
    "MacMismatchError",
    "N",
    "FOLD",
    "INITKONST",
    "KEYP",
    "MAC_LENGTH",
]
