"""Tests for PII sanitization and rehydration."""

import json
from unittest.mock import patch

import pytest

from contracts import ProjectProfile, RiskRegister
from privacy import (
    MappingTable,
    MappingTableError,
    PromptPIIError,
    Sanitizer,
    assert_prompt_clean,
    redact_contact_details,
    rehydrate,
)


class TestSanitize:
    """Test tokenization of a profile."""

    def test_stakeholders_become_tokens(self, agile_profile):
        data, mapping = Sanitizer().sanitize(agile_profile)

        assert [s.placeholder for s in data.stakeholders] == ["[STAKEHOLDER_1]", "[STAKEHOLDER_2]"]
        assert data.stakeholders[0].contact_placeholder == "[STAKEHOLDER_1_EMAIL]"
        assert data.stakeholders[0].role == "Product Owner"
        assert mapping["[STAKEHOLDER_1]"] == "Alice Smith"
        assert mapping["[STAKEHOLDER_2_EMAIL]"] == "bob@acme.com"

    def test_free_text_reuses_stakeholder_tokens(self, agile_profile):
        data, _ = Sanitizer().sanitize(agile_profile)
        assert "Alice Smith" not in data.vision
        assert "alice@acme.com" not in data.vision
        assert "[STAKEHOLDER_1]" in data.vision
        assert "[STAKEHOLDER_1_EMAIL]" in data.vision

    def test_phone_numbers_are_tokenized(self, agile_profile):
        data, mapping = Sanitizer().sanitize(agile_profile)
        assert "555-123-4567" not in data.description
        assert "[PHONE_1]" in data.description
        assert mapping["[PHONE_1]"] == "555-123-4567"

    def test_unknown_emails_get_email_tokens(self):
        data, mapping = Sanitizer().sanitize({
            "name": "X", "vision": "Write to ops@example.org or ops@example.org",
        })
        assert data.vision == "Write to [EMAIL_1] or [EMAIL_1]"
        assert mapping["[EMAIL_1]"] == "ops@example.org"

    def test_board_members_get_role_tokens(self, prince2_profile):
        data, mapping = Sanitizer().sanitize(prince2_profile)
        board = data.prince2_stakeholders
        assert board.senior_user.placeholder == "[SENIOR_USER]"
        assert board.executive.contact_placeholder == "[EXECUTIVE_EMAIL]"
        assert board.senior_supplier.role == "Senior Supplier"
        assert mapping["[EXECUTIVE]"] == "Grace Hall"

    def test_same_person_gets_same_token(self):
        data, mapping = Sanitizer().sanitize({
            "name": "Portal",
            "stakeholders": [{"name": "Ann Lee"}],
            "prince2Stakeholders": {"executive": {"name": "Ann Lee"}},
            "methodology": "prince2",
        })
        assert data.prince2_stakeholders.executive.placeholder == "[STAKEHOLDER_1]"
        assert list(mapping.values()).count("Ann Lee") == 1

    def test_name_inside_word_is_left_alone(self):
        data, _ = Sanitizer().sanitize({
            "name": "Portal",
            "vision": "Ann and Annabel review it",
            "stakeholders": [{"name": "Ann"}],
        })
        assert data.vision == "[STAKEHOLDER_1] and Annabel review it"

    def test_sanitizing_twice_is_deterministic(self, agile_profile):
        first = Sanitizer().sanitize(agile_profile)
        second = Sanitizer().sanitize(agile_profile)
        assert first.data == second.data
        assert first.mapping == second.mapping


class TestRehydrate:
    """Test the rehydration round trip."""

    def test_round_trip_restores_profile(self, agile_profile):
        sanitizer = Sanitizer()
        data, mapping = sanitizer.sanitize(agile_profile)
        restored = sanitizer.restore_profile(data, mapping)
        original = ProjectProfile.model_validate(agile_profile)

        assert restored.name == original.name
        assert restored.vision == original.vision
        assert restored.description == original.description
        assert [s.name for s in restored.stakeholders] == [s.name for s in original.stakeholders]
        assert [s.email for s in restored.stakeholders] == [s.email for s in original.stakeholders]

    def test_round_trip_restores_board(self, prince2_profile):
        sanitizer = Sanitizer()
        data, mapping = sanitizer.sanitize(prince2_profile)
        restored = sanitizer.restore_profile(data, mapping)
        assert restored.prince2_stakeholders.senior_user.name == "Erin Lee"
        assert restored.prince2_stakeholders.senior_supplier.email == "frank@vendor.example"

    def test_string(self):
        mapping = MappingTable({"[STAKEHOLDER_1]": "Alice"})
        assert rehydrate("Owner: [STAKEHOLDER_1]", mapping) == "Owner: Alice"

    def test_json_with_quote_in_value(self):
        mapping = MappingTable({"[STAKEHOLDER_1]": 'Bob "The Builder" O\'Neil\\'})
        content = {"owner": "[STAKEHOLDER_1]", "items": ["[STAKEHOLDER_1] signs off"]}
        result = rehydrate(content, mapping)
        assert result["owner"] == 'Bob "The Builder" O\'Neil\\'
        assert result["items"] == ['Bob "The Builder" O\'Neil\\ signs off']

    def test_value_that_looks_like_a_token_is_not_expanded_again(self):
        mapping = MappingTable({"[STAKEHOLDER_1]": "[STAKEHOLDER_2]", "[STAKEHOLDER_2]": "Zed"})
        assert rehydrate("[STAKEHOLDER_1]", mapping) == "[STAKEHOLDER_2]"

    def test_pydantic_model(self):
        mapping = MappingTable({"[SENIOR_USER]": "Erin Lee"})
        register = RiskRegister.model_validate({
            "risks": [{
                "id": "R1", "category": "Technical", "description": "Outage",
                "probability": "low", "impact": "high", "owner": "[SENIOR_USER]",
                "response": "Monitor",
            }],
        })
        result = rehydrate(register, mapping)
        assert isinstance(result, RiskRegister)
        assert result.risks[0].owner == "Erin Lee"

    def test_parse_failure_returns_original(self, caplog):
        mapping = MappingTable({"[STAKEHOLDER_1]": "x"})
        content = {"owner": "[STAKEHOLDER_1]"}
        error = json.JSONDecodeError("bad", "{", 0)
        with patch("privacy.sanitizer.json.loads", side_effect=error):
            result = rehydrate(content, mapping)
        assert result is content
        assert "Rehydration failed" in caplog.text

    def test_empty_mapping_returns_content_unchanged(self):
        content = {"owner": "[STAKEHOLDER_1]"}
        assert rehydrate(content, MappingTable()) is content
        assert rehydrate(None, MappingTable({"[A]": "b"})) is None


class TestMappingTable:
    """Test MappingTable invariants."""

    def test_conflicting_token_raises(self):
        with pytest.raises(MappingTableError):
            MappingTable([("[STAKEHOLDER_1]", "Alice"), ("[STAKEHOLDER_1]", "Bob")])

    def test_repeated_identical_entry_is_fine(self):
        table = MappingTable([("[STAKEHOLDER_1]", "Alice"), ("[STAKEHOLDER_1]", "Alice")])
        assert len(table) == 1

    def test_malformed_token_raises(self):
        with pytest.raises(MappingTableError):
            MappingTable({"STAKEHOLDER_1": "Alice"})

    def test_longest_token_matches_first(self):
        table = MappingTable({"[STAKEHOLDER_1]": "Alice", "[STAKEHOLDER_1_EMAIL]": "a@x.io"})
        assert rehydrate("[STAKEHOLDER_1_EMAIL]", table) == "a@x.io"


class TestPromptGuard:
    """Test the outbound prompt guard."""

    def test_clean_prompt_passes(self):
        assert_prompt_clean("Owner: [STAKEHOLDER_1], contact [STAKEHOLDER_1_EMAIL]")

    @pytest.mark.parametrize("text", [
        "mail alice@acme.com",
        "ssn 123-45-6789",
        "card 4111 1111 1111 1111",
    ])
    def test_pii_is_blocked(self, text):
        with pytest.raises(PromptPIIError):
            assert_prompt_clean(text)


class TestRedactContactDetails:
    """Test masking of contact details in model-written content."""

    def test_nested_values_are_masked(self):
        content = {
            "industry_analysis": ["Vendor support via support@vendor.com"],
            "projects": [{"contact": "call +1 555 123 4567", "budget": 120000}],
        }
        redacted, count = redact_contact_details(content)
        assert count == 2
        assert redacted["industry_analysis"] == ["Vendor support via [REDACTED_EMAIL]"]
        assert redacted["projects"][0] == {"contact": "call [REDACTED_PHONE]", "budget": 120000}
        assert content["industry_analysis"] == ["Vendor support via support@vendor.com"]

    def test_masked_text_passes_the_guard(self):
        redacted, count = redact_contact_details("ssn 123-45-6789, card 4111 1111 1111 1111")
        assert count == 2
        assert redacted == "ssn [REDACTED_SSN], card [REDACTED_CARD]"
        assert_prompt_clean(redacted)

    def test_clean_content_is_unchanged(self):
        assert redact_contact_details({"summary": "Owner: [STAKEHOLDER_1]"}) == (
            {"summary": "Owner: [STAKEHOLDER_1]"}, 0)
