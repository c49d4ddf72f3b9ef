# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Sources of credentials to hand to the signer.

Resolvers only produce an identity snapshot. They do not refresh or rotate
credentials.
"""

import logging
import os
from collections.abc import Callable

from ._identity import AWSCredentialIdentity
from .exceptions import MissingCredentialsError
from .interfaces.identity import AWSCredentialsIdentity, CredentialsResolver

logger = logging.getLogger(__name__)


class StaticCredentialsResolver(CredentialsResolver):
    """Resolve Static AWS Credentials."""

    def __init__(self, *, credentials: AWSCredentialsIdentity) -> None:
        self._credentials = credentials

    def get_identity(self) -> AWSCredentialsIdentity:
        return self._credentials


class EnvironmentCredentialsResolver(CredentialsResolver):
    """Resolves AWS Credentials from system environment variables."""

    def __init__(self) -> None:
        self._credentials: AWSCredentialsIdentity | None = None

    def get_identity(self) -> AWSCredentialsIdentity:
        if self._credentials is not None:
            return self._credentials

        access_key_id = os.getenv("AWS_ACCESS_KEY_ID")
        secret_access_key = os.getenv("AWS_SECRET_ACCESS_KEY")
        session_token = os.getenv("AWS_SESSION_TOKEN")

        if access_key_id is None or secret_access_key is None:
            raise MissingCredentialsError(
                "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY are required"
            )

        self._credentials = AWSCredentialIdentity(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token or None,
        )
        return self._credentials


def _env_creds_available() -> bool:
    return "AWS_ACCESS_KEY_ID" in os.environ and "AWS_SECRET_ACCESS_KEY" in os.environ


def _build_env_creds() -> CredentialsResolver:
    return EnvironmentCredentialsResolver()


type CredentialSource = tuple[Callable[[], bool], Callable[[], CredentialsResolver]]
_DEFAULT_SOURCES: list[CredentialSource] = [(_env_creds_available, _build_env_creds)]


class CredentialsResolverChain(CredentialsResolver):
    """Resolves AWS Credentials from the first available source.

    Each source is a pair of callables: one reporting whether the source can be used,
    and one building its resolver. Once a source has been selected it is reused for
    every later call.
    """

    def __init__(self, *, sources: list[CredentialSource] | None = None):
        if sources is None:
            sources = _DEFAULT_SOURCES
        self._sources: list[CredentialSource] = sources
        self._credentials_resolver: CredentialsResolver | None = None

    def get_identity(self) -> AWSCredentialsIdentity:
        if self._credentials_resolver is not None:
            return self._credentials_resolver.get_identity()

        for available, build in self._sources:
            if available():
                self._credentials_resolver = build()
                logger.debug(
                    "Using %s for credentials",
                    type(self._credentials_resolver).__name__,
                )
                return self._credentials_resolver.get_identity()

        raise MissingCredentialsError(
            "None of the configured credentials sources were able to resolve "
            "credentials."
        )
