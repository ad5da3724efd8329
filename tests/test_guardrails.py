"""
Tests for guardrail filters and the guardrail pipeline.
"""

import pytest

from guardrails.exceptions import ContentRejectedError
from guardrails.moderation import ContentModerationFilter
from guardrails.pii_masking import PIIMaskingFilter
from guardrails.pipeline import GuardrailPipeline
from model_router.models import ChatMessage, ChatRequest, ChatResponse, Usage


class TestPIIMaskingFilter:
    """Test PII masking."""

    def test_masks_email(self):
        result = PIIMaskingFilter().apply("Contact me at john.doe@example.com please")
        assert result == "Contact me at [REDACTED:EMAIL] please"

    def test_masks_credit_card(self):
        result = PIIMaskingFilter().apply("Card: 4111 1111 1111 1111")
        assert result == "Card: [REDACTED:CREDIT_CARD]"

    def test_masks_separated_ssn(self):
        result = PIIMaskingFilter().apply("SSN 123-45-6789 on file")
        assert result == "SSN [REDACTED:SSN] on file"

    def test_bare_nine_digits_are_not_ssn(self):
        text = "Order 123456789 shipped"
        assert PIIMaskingFilter().apply(text) == text

    def test_masks_bank_account_keeping_label(self):
        result = PIIMaskingFilter().apply("account number 12345678901")
        assert result == "account number [REDACTED:BANK_ACCOUNT]"

    def test_masks_us_phone(self):
        result = PIIMaskingFilter().apply("Call 555-123-4567 today")
        assert result == "Call [REDACTED:PHONE] today"

    def test_masks_several_types(self):
        result = PIIMaskingFilter().apply("Mail a@b.io or call 555-123-4567")
        assert "[REDACTED:EMAIL]" in result
        assert "[REDACTED:PHONE]" in result
        assert "a@b.io" not in result

    def test_text_without_pii_unchanged(self):
        text = "What is the capital of France?"
        assert PIIMaskingFilter().apply(text) == text

    def test_configure_disables_type(self):
        pii = PIIMaskingFilter()
        pii.configure({"redact_emails": False})

        result = pii.apply("john@example.com / 555-123-4567")

        assert "john@example.com" in result
        assert "[REDACTED:PHONE]" in result


class TestContentModerationFilter:
    """Test blocked-term moderation."""

    def test_clean_text_passes(self):
        moderation = ContentModerationFilter(["forbidden"])
        assert moderation.apply("all good") == "all good"

    def test_blocked_term_rejected_case_insensitively(self):
        moderation = ContentModerationFilter(["Forbidden"])

        with pytest.raises(ContentRejectedError) as exc_info:
            moderation.apply("this is FORBIDDEN text")

        assert exc_info.value.filter_name == "content_moderation"
        assert exc_info.value.status_code == 400
        assert exc_info.value.error_code == "content_rejected"

    def test_blank_terms_ignored(self):
        moderation = ContentModerationFilter(["", "  ", "bad"])
        assert moderation.blocked_terms == ("bad",)

    def test_configure_replaces_terms(self):
        moderation = ContentModerationFilter(["bad"])
        moderation.configure({"blocked_terms": ["worse"]})

        assert moderation.apply("bad") == "bad"
        with pytest.raises(ContentRejectedError):
            moderation.apply("worse")


class TestGuardrailPipeline:
    """Test filter composition over requests and responses."""

    def _request(self, *contents):
        return ChatRequest(messages=[ChatMessage(role="user", content=c) for c in contents])

    def test_empty_pipeline_is_identity(self):
        pipeline = GuardrailPipeline()
        request = self._request("john@example.com")

        assert not pipeline
        assert pipeline.apply_to_request(request) is request

    def test_unchanged_request_returned_as_is(self):
        pipeline = GuardrailPipeline([PIIMaskingFilter()])
        request = self._request("hello")

        assert pipeline.apply_to_request(request) is request

    def test_request_messages_masked(self):
        pipeline = GuardrailPipeline([PIIMaskingFilter()])
        request = self._request("hello", "mail john@example.com")

        filtered = pipeline.apply_to_request(request)

        assert [m.content for m in filtered.messages] == ["hello", "mail [REDACTED:EMAIL]"]
        assert request.messages[1].content == "mail john@example.com"

    def test_moderation_runs_before_masking(self):
        pipeline = GuardrailPipeline(
            [ContentModerationFilter(["john@example.com"]), PIIMaskingFilter()]
        )
        with pytest.raises(ContentRejectedError):
            pipeline.apply("write to john@example.com")

    def test_response_masked(self):
        pipeline = GuardrailPipeline([PIIMaskingFilter()])
        response = ChatResponse.completion("gpt-4o", "reach me at a@b.io", Usage.of(1, 2))

        filtered = pipeline.apply_to_response(response)

        assert filtered.content == "reach me at [REDACTED:EMAIL]"
        assert filtered.id == response.id
        assert filtered.usage == response.usage

    def test_chunk_masked(self):
        pipeline = GuardrailPipeline([PIIMaskingFilter()])
        chunk = ChatResponse.chunk("gpt-4o", "a@b.io ")

        filtered = pipeline.apply_to_response(chunk)

        assert filtered.is_chunk
        assert filtered.content == "[REDACTED:EMAIL] "

    def test_empty_chunk_untouched(self):
        pipeline = GuardrailPipeline([ContentModerationFilter(["x"])])
        chunk = ChatResponse.chunk("gpt-4o", "", finish_reason="stop")

        assert pipeline.apply_to_response(chunk) is chunk
