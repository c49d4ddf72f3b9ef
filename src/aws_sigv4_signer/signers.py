# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import datetime
import hmac
import logging
import warnings
from asyncio import iscoroutinefunction
from collections.abc import Iterable
from hashlib import sha256
from typing import Required, TypedDict

from ._http import AWSRequest, Field
from ._utils import to_utc_datetime
from .exceptions import (
    EncodingError,
    MissingExpectedParameterException,
    MissingHeaderError,
    SigV4Warning,
    StreamReadError,
)
from .interfaces.http import Body, FieldPosition, Fields, FieldValue
from .interfaces.identity import AWSCredentialsIdentity
from .interfaces.io import ByteStream

logger = logging.getLogger(__name__)

SIGV4_ALGORITHM: str = "AWS4-HMAC-SHA256"
SIGV4_TIMESTAMP_FORMAT: str = "%Y%m%dT%H%M%SZ"
SIGV4_DATE_FORMAT: str = "%Y%m%d"
SIGV4_TERMINATOR: str = "aws4_request"
EMPTY_SHA256_HASH = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
PAYLOAD_CHUNK_SIZE: int = 4096

AUTHORIZATION_FIELD: str = "Authorization"
SECURITY_TOKEN_FIELD: str = "X-Amz-Security-Token"


class SigV4SigningProperties(TypedDict, total=False):
    region: Required[str]
    service: Required[str]
    timestamp: datetime.datetime | int | float


class SigV4Signer:
    """Request signer for applying the AWS Signature Version 4 algorithm.

    The signer holds no state between calls, so one instance may be shared freely.
    """

    def sign(
        self,
        *,
        signing_properties: SigV4SigningProperties,
        request: AWSRequest,
        identity: AWSCredentialsIdentity,
    ) -> AWSRequest:
        """Generate a SigV4 signature and set it as the request's ``Authorization``
        field.

        The request is updated in place and returned. Its body is consumed while
        hashing and is not rewound. No field other than ``Authorization`` is added or
        changed, so temporary credentials require the caller to have set
        ``X-Amz-Security-Token`` beforehand.

        :param signing_properties: SigV4SigningProperties to define signing primitives
            such as the target service, region, and timestamp.
        :param request: An AWSRequest to sign prior to sending to the service.
        :param identity: A set of credentials representing an AWS Identity or role
            capacity.
        """
        self._validate_identity(identity=identity)
        new_signing_properties = self._normalize_signing_properties(
            signing_properties=signing_properties
        )
        self._check_security_token(request=request, identity=identity)

        signed_headers, canonical_fields = self.canonical_headers(fields=request.fields)
        canonical_request = self._assemble_canonical_request(
            request=request,
            signed_headers=signed_headers,
            canonical_fields=canonical_fields,
            payload_hash=self.payload_hash(body=request.body),
        )
        logger.debug("Canonical request:\n%s", canonical_request)

        string_to_sign = self.string_to_sign(
            canonical_request=canonical_request,
            signing_properties=new_signing_properties,
        )
        logger.debug("String to sign:\n%s", string_to_sign)

        signature = self.signature(
            string_to_sign=string_to_sign,
            secret_key=identity.secret_access_key,
            signing_properties=new_signing_properties,
        )
        credential_scope = self._scope(signing_properties=new_signing_properties)
        authorization = self.generate_authorization_field(
            credential=f"{identity.access_key_id}/{credential_scope}",
            signed_headers=signed_headers,
            signature=signature,
        )
        request.fields.set_field(authorization)
        return request

    def generate_authorization_field(
        self, *, credential: str, signed_headers: list[str], signature: str
    ) -> Field:
        """Generate the `Authorization` field.

        :param credential:
            Credential scope string for generating the Authorization header.
            Defined as:
                <access_key>/<date>/<region>/<service>/<request_type>
        :param signed_headers:
            A list of the field names used in signing.
        :param signature:
            Final hash of the SigV4 signing algorithm generated from the
            canonical request and string to sign.
        """
        signed_headers_str = ";".join(signed_headers)
        auth_str = (
            f"{SIGV4_ALGORITHM} Credential={credential}, "
            f"SignedHeaders={signed_headers_str}, Signature={signature}"
        )
        return Field(name=AUTHORIZATION_FIELD, values=[auth_str])

    def canonical_request(self, *, request: AWSRequest) -> str:
        """The canonical request is a standardized string laying out the components used
        in the SigV4 signing algorithm. This is useful to quickly compare inputs to find
        signature mismatches and unintended variances.

        The layout is:
            <HTTPMethod>\n
            <CanonicalURI>\n
            <CanonicalQueryString>\n
            <CanonicalHeaders>\n
            \n
            <SignedHeaders>\n
            <HashedPayload>

        Computing the canonical request consumes the request body.

        :param request:
            An AWSRequest to use for generating a SigV4 signature.
        """
        signed_headers, canonical_fields = self.canonical_headers(fields=request.fields)
        return self._assemble_canonical_request(
            request=request,
            signed_headers=signed_headers,
            canonical_fields=canonical_fields,
            payload_hash=self.payload_hash(body=request.body),
        )

    def _assemble_canonical_request(
        self,
        *,
        request: AWSRequest,
        signed_headers: list[str],
        canonical_fields: list[str],
        payload_hash: str,
    ) -> str:
        canonical_path = self._format_canonical_path(path=request.destination.path)
        canonical_query = request.destination.query or ""
        header_block = "\n".join(canonical_fields)
        return (
            f"{request.method}\n"
            f"{canonical_path}\n"
            f"{canonical_query}\n"
            f"{header_block}\n"
            "\n"
            f"{';'.join(signed_headers)}\n"
            f"{payload_hash}"
        )

    def string_to_sign(
        self,
        *,
        canonical_request: str,
        signing_properties: SigV4SigningProperties,
    ) -> str:
        """The string to sign concatenates the formal identifier of our signing
        algorithm, the signing DateTime, the scope of our credentials, and a hash of our
        previously generated canonical request. This is another checkpoint that can be
        used to ensure we're constructing our signature as intended.

        The layout is:
            Algorithm \n
            RequestDateTime \n
            CredentialScope  \n
            HashedCanonicalRequest

        :param canonical_request:
            String generated from the `canonical_request` method.
        :param signing_properties:
            SigV4SigningProperties to define signing primitives such as
            the target service, region, and timestamp.
        """
        timestamp = self._timestamp(signing_properties=signing_properties)
        return (
            f"{SIGV4_ALGORITHM}\n"
            f"{timestamp.strftime(SIGV4_TIMESTAMP_FORMAT)}\n"
            f"{self._scope(signing_properties=signing_properties)}\n"
            f"{sha256(canonical_request.encode()).hexdigest()}"
        )

    def signature(
        self,
        *,
        string_to_sign: str,
        secret_key: str,
        signing_properties: SigV4SigningProperties,
    ) -> str:
        """Sign the string to sign with a key scoped to the date, region and service.

        Only the final HMAC is hex encoded.
        """
        timestamp = self._timestamp(signing_properties=signing_properties)
        signing_key = self.signing_key(
            secret_key=secret_key,
            date=timestamp.strftime(SIGV4_DATE_FORMAT),
            region=signing_properties["region"],
            service=signing_properties["service"],
        )
        return self._hmac(key=signing_key, value=string_to_sign).hex()

    def signing_key(
        self, *, secret_key: str, date: str, region: str, service: str
    ) -> bytes:
        """Derive the signing key for one day, region and service.

        Each stage is keyed with the raw digest of the stage before it:

        DateKey              = HMAC-SHA256("AWS4"+"<SecretAccessKey>", "<YYYYMMDD>")
        DateRegionKey        = HMAC-SHA256(<DateKey>, "<aws-region>")
        DateRegionServiceKey = HMAC-SHA256(<DateRegionKey>, "<aws-service>")
        SigningKey           = HMAC-SHA256(<DateRegionServiceKey>, "aws4_request")
        """
        k_date = self._hmac(key=f"AWS4{secret_key}".encode(), value=date)
        k_region = self._hmac(key=k_date, value=region)
        k_service = self._hmac(key=k_region, value=service)
        return self._hmac(key=k_service, value=SIGV4_TERMINATOR)

    def _hmac(self, *, key: bytes, value: str) -> bytes:
        return hmac.new(key=key, msg=value.encode(), digestmod=sha256).digest()

    def canonical_headers(self, *, fields: Fields) -> tuple[list[str], list[str]]:
        """Normalize the request's header fields for signing.

        Names are lower-cased, de-duplicated and sorted by code point. Each value is
        decoded as UTF-8 and stripped of surrounding whitespace, and multiple values
        are joined with a comma. The ``Authorization`` field is never included.

        :returns: The sorted field names and the matching ``name:values`` lines. Both
            lists are index-aligned.
        :raises EncodingError: If a field value is not valid UTF-8.
        :raises MissingHeaderError: If a name cannot be found in ``fields`` again.
        """
        names = sorted(
            {
                field.name.lower()
                for field in fields.get_by_type(FieldPosition.HEADER)
                if field.name.lower() != AUTHORIZATION_FIELD.lower()
            }
        )
        lines: list[str] = []
        for name in names:
            try:
                field = fields[name]
            except KeyError as e:
                raise MissingHeaderError(
                    f"Header {name!r} was listed for signing but could not be found "
                    "in the request fields."
                ) from e
            values = ",".join(
                _decode(value, description=f"Value of header {name!r}").strip()
                for value in field.values
            )
            lines.append(f"{name}:{values}")
        return names, lines

    def payload_hash(self, *, body: Body) -> str:
        """Compute the hex SHA-256 digest of the request payload.

        Streams are read in chunks of ``PAYLOAD_CHUNK_SIZE`` bytes until a read returns
        no data. The body is not rewound afterwards.

        :raises StreamReadError: If reading the body raises ``OSError``.
        :raises TypeError: If the body is not a supported synchronous type.
        """
        if body is None:
            return EMPTY_SHA256_HASH

        checksum = sha256()
        if isinstance(body, bytes | bytearray):
            checksum.update(body)
        elif isinstance(body, ByteStream) and not iscoroutinefunction(body.read):
            for chunk in _read_chunks(body):
                checksum.update(chunk)
        elif isinstance(body, Iterable):
            try:
                for chunk in body:
                    checksum.update(chunk)
            except OSError as e:
                raise StreamReadError(
                    f"Failed to read the request body while hashing it: {e}"
                ) from e
        else:
            raise TypeError(
                "Only synchronous request bodies can be signed. Ensure your body is "
                f"bytes, a readable stream or an Iterable[bytes], not {type(body)}."
            )
        return checksum.hexdigest()

    def _validate_identity(self, *, identity: AWSCredentialsIdentity) -> None:
        """Perform runtime and expiration checks before attempting signing."""
        if not isinstance(identity, AWSCredentialsIdentity):  # pyright: ignore
            raise ValueError(
                "Received unexpected value for identity parameter. Expected "
                f"AWSCredentialIdentity but received {type(identity)}."
            )
        elif identity.is_expired:
            raise ValueError(
                f"Provided identity expired at {identity.expiration}. Please "
                "refresh the credentials or update the expiration parameter."
            )

    def _check_security_token(
        self, *, request: AWSRequest, identity: AWSCredentialsIdentity
    ) -> None:
        if identity.session_token and SECURITY_TOKEN_FIELD not in request.fields:
            warnings.warn(
                "The identity has a session token but the request has no "
                f"{SECURITY_TOKEN_FIELD} field, so the token will not be sent or "
                "signed. Set the field before signing to use temporary credentials.",
                SigV4Warning,
                stacklevel=3,
            )

    def _normalize_signing_properties(
        self, *, signing_properties: SigV4SigningProperties
    ) -> SigV4SigningProperties:
        # Create copy of signing properties to avoid mutating the original
        new_signing_properties = SigV4SigningProperties(**signing_properties)
        for required in ("region", "service"):
            if not new_signing_properties.get(required):
                raise MissingExpectedParameterException(
                    f"Cannot sign a request without a {required!r} in the "
                    "signing_properties."
                )
        timestamp = new_signing_properties.get("timestamp")
        if timestamp is None:
            timestamp = datetime.datetime.now(datetime.UTC)
        new_signing_properties["timestamp"] = to_utc_datetime(timestamp)
        return new_signing_properties

    def _timestamp(
        self, *, signing_properties: SigV4SigningProperties
    ) -> datetime.datetime:
        timestamp = signing_properties.get("timestamp")
        if timestamp is None:
            raise MissingExpectedParameterException(
                "Cannot generate a signature without a timestamp in your "
                f"signing_properties. Current value: {timestamp}"
            )
        return to_utc_datetime(timestamp)

    def _scope(self, *, signing_properties: SigV4SigningProperties) -> str:
        timestamp = self._timestamp(signing_properties=signing_properties)
        formatted_date = timestamp.strftime(SIGV4_DATE_FORMAT)
        region = signing_properties["region"]
        service = signing_properties["service"]
        # Scope format: <YYYYMMDD>/<AWS Region>/<AWS Service>/aws4_request
        return f"{formatted_date}/{region}/{service}/{SIGV4_TERMINATOR}"

    def _format_canonical_path(self, *, path: str | None) -> str:
        if path is None:
            return ""
        return _decode(path, description="Request path")


_DEFAULT_SIGNER = SigV4Signer()


def sign(
    request: AWSRequest,
    *,
    region: str,
    service: str,
    timestamp: datetime.datetime | int | float | None,
    identity: AWSCredentialsIdentity,
) -> AWSRequest:
    """Sign ``request`` in place with SigV4 and return it.

    Equivalent to :py:meth:`SigV4Signer.sign`. Passing ``None`` as the timestamp signs
    with the current time.
    """
    signing_properties = SigV4SigningProperties(region=region, service=service)
    if timestamp is not None:
        signing_properties["timestamp"] = timestamp
    return _DEFAULT_SIGNER.sign(
        signing_properties=signing_properties, request=request, identity=identity
    )


def _read_chunks(stream: ByteStream) -> Iterable[bytes]:
    while True:
        try:
            chunk = stream.read(PAYLOAD_CHUNK_SIZE)
        except OSError as e:
            raise StreamReadError(
                f"Failed to read the request body while hashing it: {e}"
            ) from e
        if not chunk:
            return
        yield chunk


def _decode(value: FieldValue, *, description: str) -> str:
    """Return ``value`` as text, requiring that it is valid UTF-8."""
    try:
        if isinstance(value, bytes):
            return value.decode("utf-8")
        value.encode("utf-8")
    except UnicodeError as e:
        raise EncodingError(f"{description} is not valid UTF-8: {e}") from e
    return value
