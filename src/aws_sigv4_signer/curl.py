# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Generate curl commands for SigV4 signed requests."""

import shlex
from collections.abc import Mapping

from ._http import AWSRequest, Fields, _as_text
from .interfaces.identity import AWSCredentialsIdentity
from .signers import SigV4Signer, SigV4SigningProperties


class SigV4Curl:
    """Generates a curl command with a SigV4 signature applied."""

    signer = SigV4Signer()

    @classmethod
    def generate_signed_curl_cmd(
        cls,
        properties: SigV4SigningProperties,
        identity: AWSCredentialsIdentity,
        method: str,
        url: str,
        headers: Mapping[str, str | list[str]],
        body: bytes | None,
    ) -> str:
        # The body is hashed by the signer and sent by curl, so it must be
        # materialized rather than streamed.
        awsrequest = AWSRequest.from_url(
            method=method,
            url=url,
            fields=Fields.from_mapping(headers),
            body=body,
        )
        signed_request = cls.signer.sign(
            signing_properties=properties,
            request=awsrequest,
            identity=identity,
        )
        return cls._construct_curl_cmd(request=signed_request, body=body)

    @classmethod
    def _construct_curl_cmd(cls, request: AWSRequest, body: bytes | None) -> str:
        cmd_list = ["curl", "-X", request.method]
        for header in request.fields:
            # Values are sent exactly as they were canonicalized for signing.
            value = ",".join(_as_text(val).strip() for val in header.values)
            cmd_list.extend(["-H", f"{header.name}: {value}"])
        if body is not None:
            # Forcing bytes to a utf-8 string, if we need arbitrary bytes for the
            # terminal we should add an option to write to file and use that
            # in the command.
            cmd_list.extend(["-d", body.decode()])
        cmd_list.append(request.destination.build())
        return shlex.join(cmd_list)
