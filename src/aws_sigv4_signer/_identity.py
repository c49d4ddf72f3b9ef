# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from dataclasses import dataclass
from datetime import datetime

from ._utils import ensure_utc
from .interfaces.identity import AWSCredentialsIdentity


@dataclass(kw_only=True, frozen=True)
class AWSCredentialIdentity(AWSCredentialsIdentity):
    access_key_id: str
    secret_access_key: str
    session_token: str | None = None
    expiration: datetime | None = None

    def __post_init__(self) -> None:
        if self.expiration is not None:
            object.__setattr__(self, "expiration", ensure_utc(self.expiration))

    def __repr__(self) -> str:
        # Only the access key is safe to show.
        return (
            f"AWSCredentialIdentity(access_key_id={self.access_key_id!r}, "
            f"expiration={self.expiration!r})"
        )
