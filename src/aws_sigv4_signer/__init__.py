# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""AWS SigV4 Signer provides stand-alone request signing for use with HTTP tools
such as AioHTTP, Curl, Requests, urllib3, etc."""

from __future__ import annotations

from ._http import AWSRequest, Field, Fields, URI
from ._identity import AWSCredentialIdentity
from .signers import SigV4Signer, SigV4SigningProperties, sign

__license__ = "Apache-2.0"
__version__ = "0.1.0"

__all__ = (
    "URI",
    "AWSCredentialIdentity",
    "AWSRequest",
    "Field",
    "Fields",
    "SigV4Signer",
    "SigV4SigningProperties",
    "sign",
)
