# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0


class SigV4Warning(UserWarning): ...


class BaseSigningException(Exception):
    """Top-level exception to capture signing-related errors."""


class MissingExpectedParameterException(BaseSigningException, ValueError):
    """Some signing steps require specific signing properties to be present."""


class EncodingError(BaseSigningException, ValueError):
    """A header value or the request path is not valid UTF-8 text."""


class MissingHeaderError(BaseSigningException, KeyError):
    """A canonical header name could not be found in the request's fields.

    This indicates a defect in the supplied ``Fields`` implementation rather than a
    problem with the request itself.
    """


class StreamReadError(BaseSigningException, OSError):
    """The request body stream failed while it was being read for hashing."""


class MissingCredentialsError(BaseSigningException):
    """A credentials resolver was unable to produce an identity."""
