# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from typing import Protocol, runtime_checkable


@runtime_checkable
class ByteStream(Protocol):
    """A file-like object with a read method that returns bytes.

    A read that returns zero bytes signals the end of the stream. Failures are
    reported by raising ``OSError``.
    """

    def read(self, size: int | None = -1, /) -> bytes: ...
