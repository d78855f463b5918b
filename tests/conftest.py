"""Shared fixtures: sample profiles and LLM clients over the scripted provider."""

import pytest

from privacy import Sanitizer
from providers.base import LLMProvider
from providers.client import LLMClient


@pytest.fixture
def agile_profile():
    return {
        "projectName": "Acme Customer Portal",
        "vision": "Self-service portal. Questions go to Alice Smith at alice@acme.com.",
        "businessCase": "Cut support calls by 30%",
        "description": "Portal for Acme customers; call 555-123-4567 for access.",
        "methodology": "agile",
        "sector": "Retail",
        "budget": "$250,000",
        "timeline": "6 months",
        "stakeholders": [
            {"name": "Alice Smith", "email": "alice@acme.com", "title": "Product Owner"},
            {"name": "Bob O'Neil", "email": "bob@acme.com", "title": "Tech Lead"},
        ],
    }


@pytest.fixture
def prince2_profile():
    return {
        "projectName": "Records Migration",
        "vision": "Move records to the new platform",
        "methodology": "prince2",
        "sector": "Public sector",
        "budget": "$1,000,000",
        "startDate": "2026-01-01",
        "endDate": "2026-12-31",
        "stakeholders": [{"name": "Dana Kim", "email": "dana@gov.example", "title": "Analyst"}],
        "prince2Stakeholders": {
            "seniorUser": {"name": "Erin Lee", "email": "erin@gov.example"},
            "seniorSupplier": {"name": "Frank Wu", "email": "frank@vendor.example"},
            "executive": {"name": "Grace Hall", "email": "grace@gov.example"},
        },
    }


@pytest.fixture
def agile_data(agile_profile):
    return Sanitizer().sanitize(agile_profile).data


@pytest.fixture
def prince2_data(prince2_profile):
    return Sanitizer().sanitize(prince2_profile).data


@pytest.fixture
def make_client():
    def factory(provider: LLMProvider) -> LLMClient:
        return LLMClient(provider, cost_fn=lambda i, o: 0.0)
    return factory
