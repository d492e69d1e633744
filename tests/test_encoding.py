"""Unit tests for chunk encoding and reassembly."""

import base64
import json
import math

import pytest

from chunkstore.encoding import (
    ChunkDecoder,
    ChunkEncoder,
    JsonPayloadValidator,
    LegacyChunkDecoder,
    NullPayloadValidator,
)
from chunkstore.exceptions import CorruptPayloadError, EncodingError, ReassemblyError


def make_document(chars: int) -> str:
    """JSON document of exactly `chars` characters."""
    skeleton = json.dumps({"payload": ""})
    return json.dumps({"payload": "x" * (chars - len(skeleton))})


class TestChunkEncoder:
    """Test document splitting."""

    def test_chunk_count_follows_base64_length(self):
        document = make_document(250_000)
        encoder = ChunkEncoder(chunk_size=51_200)

        payloads = encoder.encode(document)

        transport_length = len(base64.b64encode(document.encode('utf-8')))
        assert len(payloads) == math.ceil(transport_length / 51_200)
        assert all(p.total_chunks == len(payloads) for p in payloads)

    def test_indices_are_contiguous_and_share_set_id(self):
        payloads = ChunkEncoder(chunk_size=1000).encode(make_document(10_000))

        assert [p.index for p in payloads] == list(range(len(payloads)))
        assert len({p.chunk_set_id for p in payloads}) == 1

    def test_every_chunk_but_last_is_full(self):
        payloads = ChunkEncoder(chunk_size=1000).encode(make_document(10_000))

        assert all(len(p.data) == 1000 for p in payloads[:-1])
        assert 0 < len(payloads[-1].data) <= 1000

    def test_each_upload_gets_a_new_chunk_set_id(self):
        encoder = ChunkEncoder(chunk_size=100)
        assert encoder.encode("{}")[0].chunk_set_id != encoder.encode("{}")[0].chunk_set_id

    def test_empty_document_yields_one_empty_chunk(self):
        payloads = ChunkEncoder().encode("")

        assert len(payloads) == 1
        assert payloads[0].data == ""
        assert payloads[0].total_chunks == 1

    def test_chunk_size_must_be_positive(self):
        with pytest.raises(ValueError):
            ChunkEncoder(chunk_size=0)

    def test_lone_surrogate_is_an_encoding_error(self):
        with pytest.raises(EncodingError):
            ChunkEncoder().encode('{"bad": "\ud800"}')


class TestChunkDecoder:
    """Test reassembly."""

    def test_round_trip_with_multibyte_characters(self):
        document = json.dumps({"name": "Tōkyō 🏯 城", "layers": ["é" * 500, "字" * 700]}, ensure_ascii=False)
        payloads = ChunkEncoder(chunk_size=97).encode(document)

        decoded = ChunkDecoder().decode([p.data for p in payloads], payloads[0].total_chunks)

        assert decoded == document

    def test_round_trip_of_large_document(self):
        document = make_document(250_000)
        payloads = ChunkEncoder().encode(document)

        assert ChunkDecoder().decode([p.data for p in payloads], len(payloads)) == document

    def test_accepts_bytes_chunks(self):
        payloads = ChunkEncoder(chunk_size=8).encode('{"a": 1}')

        assert ChunkDecoder().decode([p.data.encode('ascii') for p in payloads]) == '{"a": 1}'

    def test_count_mismatch_is_reassembly_error(self):
        payloads = ChunkEncoder(chunk_size=8).encode('{"a": [1, 2, 3]}')

        with pytest.raises(ReassemblyError):
            ChunkDecoder().decode([p.data for p in payloads], len(payloads) + 1)

    def test_missing_slot_is_reassembly_error(self):
        chunks = [p.data for p in ChunkEncoder(chunk_size=8).encode('{"a": [1, 2, 3]}')]
        chunks[1] = None

        with pytest.raises(ReassemblyError):
            ChunkDecoder().decode(chunks)

    def test_empty_slot_in_multi_chunk_set_is_reassembly_error(self):
        chunks = [p.data for p in ChunkEncoder(chunk_size=8).encode('{"a": [1, 2, 3]}')]
        chunks[0] = ""

        with pytest.raises(ReassemblyError):
            ChunkDecoder().decode(chunks)

    def test_no_chunks_is_reassembly_error(self):
        with pytest.raises(ReassemblyError):
            ChunkDecoder().decode([])

    def test_invalid_base64_is_reassembly_error(self):
        with pytest.raises(ReassemblyError):
            ChunkDecoder().decode(["not*base64!"])

    def test_truncated_json_reports_last_closing_token(self):
        document = json.dumps({"objects": [{"id": i} for i in range(50)]})
        truncated = document[:-10]
        chunks = [base64.b64encode(truncated.encode('utf-8')).decode('ascii')]

        with pytest.raises(CorruptPayloadError) as exc_info:
            ChunkDecoder().decode(chunks)

        assert exc_info.value.length == len(truncated)
        assert exc_info.value.truncation_offset == truncated.rfind('}')

    def test_null_validator_accepts_plain_text(self):
        chunks = [base64.b64encode(b"plain text").decode('ascii')]

        assert ChunkDecoder(validator=NullPayloadValidator()).decode(chunks) == "plain text"

    def test_invalid_utf8_is_corrupt_payload(self):
        chunks = [base64.b64encode(b'{"a": "\xff\xfe"}').decode('ascii')]

        with pytest.raises(CorruptPayloadError):
            ChunkDecoder().decode(chunks)


class TestLegacyChunks:
    """Test decoding of sets written with per-chunk base64."""

    def _legacy_chunks(self, document: str, raw_chunk_bytes: int):
        raw = document.encode('utf-8')
        return [
            base64.b64encode(raw[i:i + raw_chunk_bytes]).decode('ascii')
            for i in range(0, len(raw), raw_chunk_bytes)
        ]

    def test_legacy_set_is_detected_and_decoded(self):
        document = json.dumps({"mesh": "€" * 60_000}, ensure_ascii=False)
        chunks = self._legacy_chunks(document, 51_200)

        assert len(chunks[0]) == 68_268
        assert LegacyChunkDecoder().matches(chunks)
        assert ChunkDecoder().decode(chunks, len(chunks)) == document

    def test_multibyte_character_split_across_legacy_chunks(self):
        document = json.dumps({"text": "a" + "字" * 30}, ensure_ascii=False)
        chunks = self._legacy_chunks(document, 12)
        decoder = ChunkDecoder(legacy=LegacyChunkDecoder(sentinel_length=16))

        assert decoder.decode(chunks) == document

    def test_current_format_is_not_mistaken_for_legacy(self):
        payloads = ChunkEncoder().encode(make_document(250_000))

        assert not LegacyChunkDecoder().matches([p.data for p in payloads])

    def test_single_chunk_never_matches_legacy(self):
        assert not LegacyChunkDecoder(sentinel_length=4).matches(["abcd"])

    def test_current_format_with_sentinel_sized_chunks_still_decodes(self):
        document = make_document(120_000)
        payloads = ChunkEncoder(chunk_size=68_268).encode(document)

        assert LegacyChunkDecoder().matches([p.data for p in payloads])
        assert ChunkDecoder().decode([p.data for p in payloads]) == document


def test_json_validator_truncation_offset_without_closing_token():
    assert JsonPayloadValidator().truncation_offset('{"a": "b') == -1
