# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from collections.abc import AsyncIterator, Iterator
from datetime import UTC, datetime
from hashlib import sha256
from io import BytesIO

import pytest
from aws_sigv4_signer import (
    URI,
    AWSRequest,
    Field,
    Fields,
    SigV4Signer,
    SigV4SigningProperties,
)
from aws_sigv4_signer.exceptions import (
    EncodingError,
    MissingExpectedParameterException,
    MissingHeaderError,
    StreamReadError,
)
from aws_sigv4_signer.interfaces.http import FieldPosition
from aws_sigv4_signer.signers import EMPTY_SHA256_HASH, PAYLOAD_CHUNK_SIZE

SIGNER = SigV4Signer()
SECRET_KEY = "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY"
VANILLA_PROPERTIES = SigV4SigningProperties(
    region="us-east-1",
    service="service",
    timestamp=datetime(2015, 8, 30, 12, 36, 0, tzinfo=UTC),
)
VANILLA_CANONICAL_REQUEST = (
    "GET\n"
    "/\n"
    "\n"
    "host:example.amazonaws.com\n"
    "x-amz-date:20150830T123600Z\n"
    "\n"
    "host;x-amz-date\n"
    "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
)


def vanilla_request() -> AWSRequest:
    return AWSRequest(
        destination=URI(host="example.amazonaws.com", path="/"),
        method="GET",
        body=None,
        fields=Fields(
            [
                Field(name="Host", values=["example.amazonaws.com"]),
                Field(name="X-Amz-Date", values=["20150830T123600Z"]),
            ]
        ),
    )


class TestCanonicalHeaders:
    def test_names_are_lowercased_and_sorted(self) -> None:
        fields = Fields(
            [
                Field(name="X-Amz-Target", values=["Target"]),
                Field(name="Content-Type", values=["application/json"]),
                Field(name="host", values=["example.com"]),
            ]
        )
        names, lines = SIGNER.canonical_headers(fields=fields)
        assert names == ["content-type", "host", "x-amz-target"]
        assert lines == [
            "content-type:application/json",
            "host:example.com",
            "x-amz-target:Target",
        ]

    def test_sort_is_ordinal(self) -> None:
        fields = Fields(
            [
                Field(name="x-b", values=["1"]),
                Field(name="x_a", values=["2"]),
                Field(name="x-a", values=["3"]),
            ]
        )
        names, _ = SIGNER.canonical_headers(fields=fields)
        # "-" (0x2d) sorts before "_" (0x5f)
        assert names == ["x-a", "x-b", "x_a"]

    def test_values_are_trimmed_and_joined(self) -> None:
        fields = Fields(
            [Field(name="X-Multi", values=["  first ", "second\t", b" third "])]
        )
        _, lines = SIGNER.canonical_headers(fields=fields)
        assert lines == ["x-multi:first,second,third"]

    def test_interior_whitespace_is_preserved(self) -> None:
        fields = Fields([Field(name="X-Spaces", values=[" a   b "])])
        _, lines = SIGNER.canonical_headers(fields=fields)
        assert lines == ["x-spaces:a   b"]

    def test_values_containing_commas_are_not_quoted(self) -> None:
        fields = Fields([Field(name="Accept", values=["a,b", "c"])])
        _, lines = SIGNER.canonical_headers(fields=fields)
        assert lines == ["accept:a,b,c"]

    def test_mixed_case_names_merge(self) -> None:
        fields = Fields.from_mapping({"X-Dup": "one", "x-dup": "two"})
        names, lines = SIGNER.canonical_headers(fields=fields)
        assert names == ["x-dup"]
        assert lines == ["x-dup:one,two"]

    def test_authorization_is_not_signed(self) -> None:
        fields = Fields(
            [
                Field(name="Authorization", values=["AWS4-HMAC-SHA256 old"]),
                Field(name="Host", values=["example.com"]),
            ]
        )
        names, lines = SIGNER.canonical_headers(fields=fields)
        assert names == ["host"]
        assert lines == ["host:example.com"]

    def test_trailers_are_not_signed(self) -> None:
        fields = Fields(
            [
                Field(name="Host", values=["example.com"]),
                Field(
                    name="X-Checksum", values=["abc"], kind=FieldPosition.TRAILER
                ),
            ]
        )
        names, _ = SIGNER.canonical_headers(fields=fields)
        assert names == ["host"]

    def test_utf8_values_are_decoded(self) -> None:
        fields = Fields([Field(name="X-Name", values=["café".encode()])])
        _, lines = SIGNER.canonical_headers(fields=fields)
        assert lines == ["x-name:café"]

    @pytest.mark.parametrize("value", [b"\xc3\x28", b"\xff", "\udcff"])
    def test_invalid_utf8_value(self, value: str | bytes) -> None:
        fields = Fields([Field(name="X-Bad", values=[value])])
        with pytest.raises(EncodingError):
            SIGNER.canonical_headers(fields=fields)

    def test_unresolvable_name(self) -> None:
        class ForgetfulFields(Fields):
            def __getitem__(self, name: str) -> Field:
                raise KeyError(name)

        fields = ForgetfulFields([Field(name="Host", values=["example.com"])])
        with pytest.raises(MissingHeaderError):
            SIGNER.canonical_headers(fields=fields)

    def test_empty_fields(self) -> None:
        assert SIGNER.canonical_headers(fields=Fields()) == ([], [])


class TestPayloadHash:
    def test_no_body(self) -> None:
        assert SIGNER.payload_hash(body=None) == EMPTY_SHA256_HASH
        assert EMPTY_SHA256_HASH == sha256(b"").hexdigest()

    def test_empty_stream(self) -> None:
        assert SIGNER.payload_hash(body=BytesIO(b"")) == EMPTY_SHA256_HASH

    def test_bytes(self) -> None:
        assert SIGNER.payload_hash(body=b"{}") == sha256(b"{}").hexdigest()

    def test_stream_larger_than_one_chunk(self) -> None:
        payload = b"x" * (PAYLOAD_CHUNK_SIZE * 3 + 17)
        assert SIGNER.payload_hash(body=BytesIO(payload)) == sha256(payload).hexdigest()

    def test_stream_is_read_in_bounded_chunks(self) -> None:
        class RecordingStream(BytesIO):
            def __init__(self, data: bytes) -> None:
                super().__init__(data)
                self.sizes: list[int | None] = []

            def read(self, size: int | None = -1, /) -> bytes:
                self.sizes.append(size)
                return super().read(size)

        stream = RecordingStream(b"a" * (PAYLOAD_CHUNK_SIZE + 1))
        SIGNER.payload_hash(body=stream)
        assert stream.sizes == [PAYLOAD_CHUNK_SIZE] * 3

    def test_stream_is_not_rewound(self) -> None:
        stream = BytesIO(b"hello")
        SIGNER.payload_hash(body=stream)
        assert stream.tell() == 5

    def test_iterable_body(self) -> None:
        chunks = [b"hel", b"", b"lo"]
        assert SIGNER.payload_hash(body=iter(chunks)) == sha256(b"hello").hexdigest()

    def test_short_read_is_not_end_of_stream(self) -> None:
        class TrickleStream:
            def __init__(self, data: bytes) -> None:
                self._data = data

            def read(self, size: int | None = -1, /) -> bytes:
                chunk, self._data = self._data[:2], self._data[2:]
                return chunk

        body = TrickleStream(b"hello world")
        assert SIGNER.payload_hash(body=body) == sha256(b"hello world").hexdigest()

    def test_stream_failure(self) -> None:
        class FailingStream:
            def __init__(self) -> None:
                self._reads = 0

            def read(self, size: int | None = -1, /) -> bytes:
                self._reads += 1
                if self._reads > 1:
                    raise OSError("disk went away")
                return b"partial"

        with pytest.raises(StreamReadError) as exc_info:
            SIGNER.payload_hash(body=FailingStream())
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_iterable_failure(self) -> None:
        def chunks() -> Iterator[bytes]:
            yield b"partial"
            raise OSError("socket closed")

        with pytest.raises(StreamReadError):
            SIGNER.payload_hash(body=chunks())

    def test_async_body_is_rejected(self) -> None:
        async def chunks() -> AsyncIterator[bytes]:
            yield b"data"

        body = chunks()
        with pytest.raises(TypeError):
            SIGNER.payload_hash(body=body)  # type: ignore

    def test_async_reader_is_rejected(self) -> None:
        class AsyncReader:
            async def read(self, size: int = -1) -> bytes:
                return b""

        with pytest.raises(TypeError, match="Only synchronous request bodies"):
            SIGNER.payload_hash(body=AsyncReader())  # type: ignore


class TestCanonicalRequest:
    def test_vanilla(self) -> None:
        assert SIGNER.canonical_request(request=vanilla_request()) == (
            VANILLA_CANONICAL_REQUEST
        )

    def test_path_and_query_are_used_verbatim(self) -> None:
        request = AWSRequest(
            destination=URI(
                host="example.amazonaws.com",
                path="/a/../b%20c/",
                query="z=1&a=%2F",
            ),
            method="get",
            body=b"{}",
            fields=Fields([Field(name="Host", values=["example.amazonaws.com"])]),
        )
        assert SIGNER.canonical_request(request=request) == (
            "get\n"
            "/a/../b%20c/\n"
            "z=1&a=%2F\n"
            "host:example.amazonaws.com\n"
            "\n"
            "host\n"
            "44136fa355b3678a1146ad16f7e8649e94fb4fc21fe77e8310c060f61caaff8a"
        )

    def test_missing_path_and_query(self) -> None:
        request = AWSRequest(
            destination=URI(host="example.amazonaws.com"),
            method="GET",
            body=None,
            fields=Fields(),
        )
        assert SIGNER.canonical_request(request=request) == (
            f"GET\n\n\n\n\n\n{EMPTY_SHA256_HASH}"
        )

    def test_invalid_utf8_path(self) -> None:
        request = AWSRequest(
            destination=URI(host="example.amazonaws.com", path="/\udcff"),
            method="GET",
            body=None,
            fields=Fields(),
        )
        with pytest.raises(EncodingError):
            SIGNER.canonical_request(request=request)


class TestStringToSign:
    def test_vanilla(self) -> None:
        string_to_sign = SIGNER.string_to_sign(
            canonical_request=VANILLA_CANONICAL_REQUEST,
            signing_properties=VANILLA_PROPERTIES,
        )
        assert string_to_sign == (
            "AWS4-HMAC-SHA256\n"
            "20150830T123600Z\n"
            "20150830/us-east-1/service/aws4_request\n"
            "bb579772317eb040ac9ed261061d46c1f17a8133879d6129b6e1c25292927e63"
        )

    def test_epoch_timestamp(self) -> None:
        string_to_sign = SIGNER.string_to_sign(
            canonical_request="",
            signing_properties=SigV4SigningProperties(
                region="us-east-1", service="ecs", timestamp=100
            ),
        )
        assert string_to_sign.splitlines()[1:3] == [
            "19700101T000140Z",
            "19700101/us-east-1/ecs/aws4_request",
        ]

    def test_sub_second_precision_is_dropped(self) -> None:
        string_to_sign = SIGNER.string_to_sign(
            canonical_request="",
            signing_properties=SigV4SigningProperties(
                region="us-east-1",
                service="ecs",
                timestamp=datetime(2015, 8, 30, 12, 36, 0, 999999, tzinfo=UTC),
            ),
        )
        assert string_to_sign.splitlines()[1] == "20150830T123600Z"

    def test_missing_timestamp(self) -> None:
        with pytest.raises(MissingExpectedParameterException):
            SIGNER.string_to_sign(
                canonical_request=VANILLA_CANONICAL_REQUEST,
                signing_properties=SigV4SigningProperties(
                    region="us-east-1", service="service"
                ),
            )


class RecordingSigner(SigV4Signer):
    def __init__(self) -> None:
        self.keys: list[bytes] = []

    def _hmac(self, *, key: bytes, value: str) -> bytes:
        self.keys.append(key)
        return super()._hmac(key=key, value=value)


class TestSigningKey:
    def test_signing_key(self) -> None:
        key = SIGNER.signing_key(
            secret_key=SECRET_KEY,
            date="20150830",
            region="us-east-1",
            service="service",
        )
        assert key.hex() == (
            "938127b5336810ddb6a5d6af445fcac9e371f9ed418ed386b022aed82901be75"
        )

    def test_every_stage_uses_raw_digest(self) -> None:
        signer = RecordingSigner()
        signer.signature(
            string_to_sign="AWS4-HMAC-SHA256\n...",
            secret_key=SECRET_KEY,
            signing_properties=VANILLA_PROPERTIES,
        )
        assert signer.keys[0] == f"AWS4{SECRET_KEY}".encode()
        assert len(signer.keys) == 5
        assert [len(key) for key in signer.keys[1:]] == [sha256().digest_size] * 4
        assert sha256().digest_size == 32

    def test_intermediate_keys(self) -> None:
        signer = RecordingSigner()
        signer.signing_key(
            secret_key=SECRET_KEY,
            date="20150830",
            region="us-east-1",
            service="service",
        )
        assert [key.hex() for key in signer.keys[1:]] == [
            "0138c7a6cbd60aa727b2f653a522567439dfb9f3e72b21f9b25941a42f04a7cd",
            "f33d5808504bf34812e5fade63308b424b244c59189be2a591dd2282c7cb563f",
            "f7fd819348e53789a8474fb1aebea778f5af85c40612e0f064eecd5642c81bc1",
        ]

    def test_signature_is_lowercase_hex(self) -> None:
        string_to_sign = SIGNER.string_to_sign(
            canonical_request=VANILLA_CANONICAL_REQUEST,
            signing_properties=VANILLA_PROPERTIES,
        )
        signature = SIGNER.signature(
            string_to_sign=string_to_sign,
            secret_key=SECRET_KEY,
            signing_properties=VANILLA_PROPERTIES,
        )
        assert signature == (
            "5fa00fa31553b73ebf1942676e86291e8372ff2a2260956d9b8aae1d763fbf31"
        )


def test_generate_authorization_field() -> None:
    field = SIGNER.generate_authorization_field(
        credential="AKIDEXAMPLE/20150830/us-east-1/service/aws4_request",
        signed_headers=["host", "x-amz-date"],
        signature="abc123",
    )
    assert field.name == "Authorization"
    assert field.values == [
        "AWS4-HMAC-SHA256 "
        "Credential=AKIDEXAMPLE/20150830/us-east-1/service/aws4_request, "
        "SignedHeaders=host;x-amz-date, Signature=abc123"
    ]
