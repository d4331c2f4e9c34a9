from services.chat.content_parts import (
    NO_MESSAGES,
    ContentDecodeFailure,
    ContentPart,
    decode_parts,
    searchable_fragments,
    summarize,
)


class TestDecodeParts:
    def test_decodes_serialized_parts(self):
        decoded = decode_parts('[{"type": "text", "text": "hello"}]')
        assert decoded == [ContentPart(type="text", text="hello")]

    def test_accepts_deserialized_value(self):
        decoded = decode_parts([{"type": "image", "url": "a.png"}])
        assert isinstance(decoded, list)
        assert decoded[0].type == "image"
        assert decoded[0].text is None

    def test_malformed_json_is_a_failure_value(self):
        decoded = decode_parts('[{"type": "text"')
        assert isinstance(decoded, ContentDecodeFailure)
        assert decoded.reason

    def test_wrong_shape_is_a_failure_value(self):
        assert isinstance(decode_parts('{"type": "text"}'), ContentDecodeFailure)
        assert isinstance(decode_parts("[1, 2]"), ContentDecodeFailure)
        assert isinstance(decode_parts(None), ContentDecodeFailure)


class TestSummarize:
    def test_first_text_part(self):
        raw = [
            {"type": "image", "url": "a.png"},
            {"type": "text", "text": "first"},
            {"type": "text", "text": "second"},
        ]
        assert summarize(raw) == "first"

    def test_no_text_parts(self):
        assert summarize([{"type": "image", "url": "a.png"}]) == NO_MESSAGES
        assert summarize("[]") == NO_MESSAGES

    def test_malformed_payload(self):
        assert summarize("not json") == NO_MESSAGES


class TestSearchableFragments:
    def test_keeps_text_parts_separate(self):
        raw = [
            {"type": "text", "text": "hello"},
            {"type": "tool-call", "name": "search"},
            {"type": "text", "text": "world"},
        ]
        assert searchable_fragments(raw) == ["hello", "world"]

    def test_ignores_non_text_parts(self):
        assert searchable_fragments([{"type": "image", "url": "python.png"}]) == []

    def test_malformed_payload_has_no_fragments(self):
        assert searchable_fragments("{broken") == []

    def test_unicode_escapes_decode_to_text(self):
        raw = '[{"type": "text", "text": "na\\u00efve r\\u00e9sum\\u00e9"}]'
        assert searchable_fragments(raw) == ["naïve résumé"]
