"""End-to-end tests for the caption bot workflow with a mocked vision gateway."""

import pytest

from conftest import FakeTurn, inline_image, make_consent_invoke, make_message
from visionbot.activity import ActivityTypes
from visionbot.exceptions import APIError
from visionbot.vision.types import BytesImage, DescribeResult, ImageCaption, UrlImage, VisionApiError
from visionbot.workflows.caption import CaptionOutcome, CaptionWorkflow
from visionbot.workflows.common import GROUP_CHAT_HINT, INSTRUCTIONS


@pytest.fixture
def workflow(gateway, resolver):
    return CaptionWorkflow(gateway, resolver)


class TestCaptionWorkflow:
    @pytest.mark.asyncio
    async def test_caption_reply(self, workflow, gateway):
        gateway.describe.return_value = DescribeResult(captions=[ImageCaption("a cat", 0.97)])
        turn = FakeTurn(make_message(text="https://example.com/cat.jpg"))

        outcome = await workflow.on_turn(turn)

        assert outcome == CaptionOutcome.CAPTIONED
        assert turn.texts == ["I think that's a cat."]
        gateway.describe.assert_awaited_once_with(UrlImage("https://example.com/cat.jpg"), language="en")

    @pytest.mark.asyncio
    async def test_typing_indicator_comes_first(self, workflow, gateway):
        gateway.describe.return_value = DescribeResult(captions=[ImageCaption("a cat", 0.97)])
        turn = FakeTurn(make_message(text="https://example.com/cat.jpg"))

        await workflow.on_turn(turn)

        assert [a.type for a in turn.sent] == [ActivityTypes.TYPING, ActivityTypes.MESSAGE]

    @pytest.mark.asyncio
    async def test_no_caption_fallback(self, workflow, gateway):
        gateway.describe.return_value = DescribeResult(captions=[])
        turn = FakeTurn(make_message(text="https://example.com/blank.png"))

        outcome = await workflow.on_turn(turn)

        assert outcome == CaptionOutcome.NO_CAPTION
        assert turn.texts == ["¯\\_(ツ)_/¯"]

    @pytest.mark.asyncio
    async def test_no_image_sends_instructions(self, workflow, gateway):
        turn = FakeTurn(make_message(text="hello"))

        outcome = await workflow.on_turn(turn)

        assert outcome == CaptionOutcome.INSTRUCTIONS
        assert turn.texts == [INSTRUCTIONS]
        gateway.describe.assert_not_called()

    @pytest.mark.asyncio
    async def test_group_chat_instructions_include_paste_hint(self, workflow):
        turn = FakeTurn(make_message(text="hello", conversation_type="groupChat"))

        await workflow.on_turn(turn)

        assert turn.texts == [INSTRUCTIONS + GROUP_CHAT_HINT]

    @pytest.mark.asyncio
    async def test_service_error_message_is_shown(self, workflow, gateway):
        gateway.describe.side_effect = VisionApiError("bad key", code="401", request_id="r1", status=401)
        turn = FakeTurn(make_message(text="https://example.com/cat.jpg"))

        outcome = await workflow.on_turn(turn)

        assert outcome == CaptionOutcome.FAILED
        assert len(turn.texts) == 1
        assert "bad key" in turn.texts[0]
        assert turn.texts[0].startswith("There was a problem analyzing the image:")

    @pytest.mark.asyncio
    async def test_transport_error_is_shown(self, workflow, gateway):
        gateway.describe.side_effect = APIError("Could not reach the vision service: timeout")
        turn = FakeTurn(make_message(text="https://example.com/cat.jpg"))

        assert await workflow.on_turn(turn) == CaptionOutcome.FAILED
        assert "timeout" in turn.texts[0]

    @pytest.mark.asyncio
    async def test_inline_image_is_described_from_bytes(self, workflow, gateway):
        gateway.describe.return_value = DescribeResult(captions=[ImageCaption("a dog", 0.8)])
        turn = FakeTurn(make_message(attachments=[inline_image()]))

        await workflow.on_turn(turn)

        image = gateway.describe.call_args.args[0]
        assert isinstance(image, BytesImage)
        assert turn.texts == ["I think that's a dog."]

    @pytest.mark.asyncio
    async def test_invoke_is_ignored(self, workflow, gateway):
        turn = FakeTurn(make_consent_invoke("accept", "id-a"))

        assert await workflow.on_turn(turn) is None
        assert turn.sent == []
        gateway.describe.assert_not_called()
