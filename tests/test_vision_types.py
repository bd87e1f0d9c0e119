"""Tests for vision result parsing, text flattening and service error mapping."""

import pytest

from visionbot.exceptions import VisionContractError
from visionbot.vision.languages import language_display_name
from visionbot.vision.types import DescribeResult, OcrResult, VisionApiError


def _ocr_payload(regions):
    return {
        "language": "en",
        "textAngle": -1.5,
        "orientation": "Up",
        "regions": [
            {"lines": [{"words": [{"text": w} for w in line.split()]} for line in region]}
            for region in regions
        ],
    }


class TestOcrResult:
    def test_flatten_joins_words_lines_and_regions(self):
        """Two regions ['a b'] and ['c'] flatten with a blank line between regions."""
        result = OcrResult.from_dict(_ocr_payload([["a b"], ["c"]]))
        assert result.recognized_text() == "a b\r\n\r\nc"

    def test_lines_within_a_region_use_crlf(self):
        result = OcrResult.from_dict(_ocr_payload([["first line", "second"]]))
        assert result.recognized_text() == "first line\r\nsecond"

    def test_no_regions_flattens_to_empty_string(self):
        result = OcrResult.from_dict({"language": "unk", "regions": []})
        assert result.recognized_text() == ""

    def test_missing_regions_is_treated_as_empty(self):
        result = OcrResult.from_dict({"language": "en"})
        assert result.regions == []
        assert result.recognized_text() == ""

    def test_metadata_fields_are_parsed(self):
        payload = _ocr_payload([["x"]])
        payload["regions"][0]["boundingBox"] = "1,2,3,4"
        result = OcrResult.from_dict(payload)
        assert result.language == "en"
        assert result.text_angle == -1.5
        assert result.orientation == "Up"
        assert result.regions[0].bounding_box == "1,2,3,4"

    def test_word_without_text_is_a_contract_violation(self):
        with pytest.raises(VisionContractError):
            OcrResult.from_dict({"regions": [{"lines": [{"words": [{"boundingBox": "0,0,1,1"}]}]}]})

    def test_non_object_body_is_a_contract_violation(self):
        with pytest.raises(VisionContractError):
            OcrResult.from_dict(["not", "an", "object"])


class TestDescribeResult:
    def test_first_caption(self):
        result = DescribeResult.from_dict({
            "description": {
                "tags": ["cat", "indoor"],
                "captions": [{"text": "a cat", "confidence": 0.93}, {"text": "a dog", "confidence": 0.2}],
            },
            "requestId": "req-1",
            "metadata": {"width": 640, "height": 480, "format": "Jpeg"},
        })
        assert result.first_caption.text == "a cat"
        assert result.tags == ["cat", "indoor"]
        assert result.request_id == "req-1"
        assert result.metadata.width == 640

    def test_no_captions(self):
        result = DescribeResult.from_dict({"description": {"tags": [], "captions": []}})
        assert result.first_caption is None

    def test_missing_description_is_a_contract_violation(self):
        with pytest.raises(VisionContractError):
            DescribeResult.from_dict({"requestId": "req-1"})


class TestVisionApiError:
    def test_flat_error_body(self):
        error = VisionApiError.from_response(401, {"message": "bad key", "code": "401", "requestId": "r1"})
        assert error.message == "bad key"
        assert error.code == "401"
        assert error.request_id == "r1"
        assert error.status == 401
        assert str(error) == "bad key"

    def test_nested_error_body(self):
        error = VisionApiError.from_response(
            400, {"error": {"code": "InvalidImageUrl", "message": "Image URL is badly formatted."}}
        )
        assert error.code == "InvalidImageUrl"
        assert "badly formatted" in str(error)

    def test_unreadable_error_body(self):
        with pytest.raises(VisionContractError):
            VisionApiError.from_response(500, {"unexpected": True})


class TestLanguageDisplayName:
    @pytest.mark.parametrize("code,expected", [
        ("en", "English"),
        ("de", "German"),
        ("zh-Hans", "Chinese (Simplified)"),
        ("pt-BR", "Portuguese"),
        ("sr_Latn", "Serbian (Latin)"),
    ])
    def test_known_codes(self, code, expected):
        assert language_display_name(code) == expected

    def test_unknown_code_falls_back_to_code(self):
        assert language_display_name("unk") == "unk"

    def test_empty_code(self):
        assert language_display_name("") == ""
