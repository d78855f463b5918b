"""PII sanitization and rehydration.

The sanitizer turns a ProjectProfile into SanitizedProjectData plus a
MappingTable of token -> original value. Only sanitized data is ever placed in a
prompt or in the generation cache; rehydration swaps the original values back
into generated content before it is handed to the caller.

Tokens:
- [STAKEHOLDER_n] / [STAKEHOLDER_n_EMAIL] for the stakeholder list
- [SENIOR_USER], [SENIOR_SUPPLIER], [EXECUTIVE] (+ _EMAIL) for the PRINCE2 board
- [EMAIL_n] / [PHONE_n] for contact details found in free text
"""

import json
import logging
import re
from collections.abc import Mapping
from typing import Any, Dict, Iterable, Iterator, List, NamedTuple, Optional, Tuple, Union

from pydantic import BaseModel, ValidationError

from contracts.project import (
    Prince2Board,
    ProjectProfile,
    SanitizedBoard,
    SanitizedProjectData,
    SanitizedStakeholder,
    StakeholderContact,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}"
PHONE_PATTERN = r"(?<![\w+])(?:\+\d{1,3}[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}(?!\w)"
SSN_PATTERN = r"\b\d{3}-\d{2}-\d{4}\b"
CARD_PATTERN = r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b"

TOKEN_PATTERN = re.compile(r"\[[A-Z][A-Z0-9_]*\]")

_EMAIL_RE = re.compile(EMAIL_PATTERN)
_PHONE_RE = re.compile(PHONE_PATTERN)

FREE_TEXT_FIELDS = ("name", "vision", "business_case", "description")

BOARD_ROLES = (
    ("senior_user", "SENIOR_USER", "Senior User"),
    ("senior_supplier", "SENIOR_SUPPLIER", "Senior Supplier"),
    ("executive", "EXECUTIVE", "Executive"),
)


class MappingTableError(ValueError):
    """Raised when a mapping table would map one token to two different values."""


class PromptPIIError(RuntimeError):
    """Raised when an outbound prompt still carries personal data."""


class MappingTable(Mapping):
    """Immutable token -> original value table.

    Construction fails fast if the same token is given two different values.
    """

    def __init__(self, entries: Union[Mapping, Iterable[Tuple[str, str]], None] = None):
        items = entries.items() if isinstance(entries, Mapping) else (entries or ())
        table: Dict[str, str] = {}
        for token, value in items:
            if not TOKEN_PATTERN.fullmatch(token):
                raise MappingTableError(f"Malformed token: {token!r}")
            if token in table and table[token] != value:
                raise MappingTableError(
                    f"Token {token} maps to both {table[token]!r} and {value!r}"
                )
            table[token] = value
        self._table = table
        self._pattern: Optional[re.Pattern] = None

    def __getitem__(self, token: str) -> str:
        return self._table[token]

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def __repr__(self) -> str:
        return f"MappingTable({len(self._table)} tokens)"

    @property
    def pattern(self) -> re.Pattern:
        """Regex matching any token in the table, longest first."""
        if self._pattern is None:
            tokens = sorted(self._table, key=len, reverse=True)
            self._pattern = re.compile("|".join(re.escape(t) for t in tokens))
        return self._pattern

    def to_dict(self) -> Dict[str, str]:
        return dict(self._table)


class SanitizationResult(NamedTuple):
    data: SanitizedProjectData
    mapping: MappingTable


class _TokenAllocator:
    """Hands out stable tokens: a value seen before gets its existing token."""

    def __init__(self):
        self.entries: Dict[str, str] = {}
        self._by_value: Dict[str, str] = {}
        self._counters: Dict[str, int] = {}

    def token_for(self, value: str, token: str) -> str:
        if value and value in self._by_value:
            return self._by_value[value]
        self.entries[token] = value
        if value:
            self._by_value[value] = token
        return token

    def next_token(self, value: str, prefix: str) -> str:
        if value in self._by_value:
            return self._by_value[value]
        self._counters[prefix] = self._counters.get(prefix, 0) + 1
        return self.token_for(value, f"[{prefix}_{self._counters[prefix]}]")

    def known_values(self) -> List[str]:
        return sorted(self._by_value, key=len, reverse=True)


class Sanitizer:
    """Tokenizes personal data in a project profile and restores it afterwards."""

    def sanitize(self, profile: Union[ProjectProfile, Dict[str, Any]]) -> SanitizationResult:
        """Replace stakeholder names, e-mails and phone numbers with tokens.

        Args:
            profile: Raw profile (model or the dict sent by the project form)

        Returns:
            SanitizationResult(data, mapping); unpackable as a pair
        """
        if not isinstance(profile, ProjectProfile):
            profile = ProjectProfile.model_validate(profile)

        tokens = _TokenAllocator()

        stakeholders = [
            self._tokenize_contact(
                tokens,
                contact,
                f"STAKEHOLDER_{i}",
                contact.title or f"Team Member {i}",
            )
            for i, contact in enumerate(profile.stakeholders, start=1)
        ]

        board = None
        if profile.prince2_stakeholders is not None:
            members = {
                field: self._tokenize_contact(
                    tokens,
                    getattr(profile.prince2_stakeholders, field),
                    token,
                    getattr(profile.prince2_stakeholders, field).title or default_role,
                )
                for field, token, default_role in BOARD_ROLES
            }
            board = SanitizedBoard(**members)

        text = {field: self._scrub(tokens, getattr(profile, field)) for field in FREE_TEXT_FIELDS}

        data = SanitizedProjectData(
            project_name=text["name"],
            vision=text["vision"],
            business_case=text["business_case"],
            description=text["description"],
            methodology=profile.methodology,
            company_website=profile.company_website,
            sector=profile.sector,
            budget=profile.budget,
            timeline=profile.timeline,
            start_date=profile.start_date,
            end_date=profile.end_date,
            stakeholders=stakeholders,
            prince2_stakeholders=board,
            agilometer=profile.agilometer,
        )
        mapping = MappingTable(tokens.entries)
        logger.debug("Sanitized profile %r: %d tokens", data.project_name, len(mapping))
        return SanitizationResult(data, mapping)

    def rehydrate(self, content: Any, mapping: Optional[Mapping]) -> Any:
        return rehydrate(content, mapping)

    def restore_profile(self, data: SanitizedProjectData, mapping: Mapping) -> ProjectProfile:
        """Rebuild the personal fields of the original profile from sanitized data."""

        def contact(member: SanitizedStakeholder) -> StakeholderContact:
            email = ""
            if member.contact_placeholder:
                email = rehydrate(member.contact_placeholder, mapping)
            return StakeholderContact(
                name=rehydrate(member.placeholder, mapping),
                email=email,
                title=member.role,
            )

        board = None
        if data.prince2_stakeholders is not None:
            board = Prince2Board(
                senior_user=contact(data.prince2_stakeholders.senior_user),
                senior_supplier=contact(data.prince2_stakeholders.senior_supplier),
                executive=contact(data.prince2_stakeholders.executive),
            )

        return ProjectProfile(
            name=rehydrate(data.project_name, mapping),
            vision=rehydrate(data.vision, mapping),
            business_case=rehydrate(data.business_case, mapping),
            description=rehydrate(data.description, mapping),
            methodology=data.methodology,
            company_website=data.company_website,
            sector=data.sector,
            budget=data.budget,
            timeline=data.timeline,
            start_date=data.start_date,
            end_date=data.end_date,
            stakeholders=[contact(s) for s in data.stakeholders],
            prince2_stakeholders=board,
            agilometer=data.agilometer,
        )

    def assert_prompt_clean(self, prompt: str) -> None:
        assert_prompt_clean(prompt)

    @staticmethod
    def _tokenize_contact(
        tokens: _TokenAllocator,
        contact: StakeholderContact,
        token_stem: str,
        role: str,
    ) -> SanitizedStakeholder:
        placeholder = tokens.token_for(contact.name, f"[{token_stem}]")
        contact_placeholder = None
        if contact.email:
            contact_placeholder = tokens.token_for(contact.email, f"[{token_stem}_EMAIL]")
        return SanitizedStakeholder(
            role=role,
            placeholder=placeholder,
            contact_placeholder=contact_placeholder,
        )

    @staticmethod
    def _scrub(tokens: _TokenAllocator, text: str) -> str:
        """Single-pass replacement of e-mails, known names and phone numbers."""
        if not text:
            return text

        # E-mails first so a name that prefixes an address does not split it.
        alternatives = [f"(?P<email>{EMAIL_PATTERN})"]
        known = tokens.known_values()
        if known:
            names = "|".join(re.escape(v) for v in known)
            alternatives.append(rf"(?P<known>(?<!\w)(?:{names})(?!\w))")
        alternatives.append(f"(?P<phone>{PHONE_PATTERN})")
        pattern = re.compile("|".join(alternatives))

        def replace(match: re.Match) -> str:
            value = match.group(0)
            if match.lastgroup == "email":
                return tokens.next_token(value, "EMAIL")
            if match.lastgroup == "phone":
                return tokens.next_token(value, "PHONE")
            return tokens.token_for(value, "")

        return pattern.sub(replace, text)


def rehydrate(content: Any, mapping: Optional[Mapping]) -> Any:
    """Replace tokens in content with their original values.

    Handles plain strings, dict/list JSON content and pydantic models. Structured
    content is serialized, substituted and re-parsed; if re-parsing fails the
    original content is returned unchanged and a warning is logged.
    """
    if not mapping or content is None:
        return content

    table = mapping if isinstance(mapping, MappingTable) else MappingTable(mapping)

    if isinstance(content, str):
        return table.pattern.sub(lambda m: table[m.group(0)], content)

    # Values are inserted JSON-escaped so quotes and backslashes survive the re-parse.
    def escaped(match: re.Match) -> str:
        return json.dumps(table[match.group(0)])[1:-1]

    if isinstance(content, BaseModel):
        raw = table.pattern.sub(escaped, content.model_dump_json())
        try:
            return type(content).model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Rehydration of %s failed, returning sanitized content: %s",
                           type(content).__name__, e)
            return content

    if isinstance(content, (dict, list)):
        raw = table.pattern.sub(escaped, json.dumps(content, ensure_ascii=False))
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Rehydration failed, returning sanitized content: %s", e)
            return content

    return content


def assert_prompt_clean(prompt: str) -> None:
    """Refuse to send a prompt that still contains e-mails, SSNs or card numbers."""
    for label, pattern in (
        ("e-mail address", EMAIL_PATTERN),
        ("social security number", SSN_PATTERN),
        ("card number", CARD_PATTERN),
    ):
        if re.search(pattern, prompt):
            logger.error("Blocked prompt containing a %s", label)
            raise PromptPIIError(f"Prompt contains a {label}; refusing to send it")


_REDACTIONS = re.compile(
    "|".join(
        f"(?P<{label}>{pattern})"
        for label, pattern in (
            ("EMAIL", EMAIL_PATTERN),
            ("CARD", CARD_PATTERN),
            ("SSN", SSN_PATTERN),
            ("PHONE", PHONE_PATTERN),
        )
    )
)


def redact_contact_details(content: Any) -> Tuple[Any, int]:
    """Mask contact and payment identifiers in model-written content.

    Walks strings nested in dicts and lists and returns the redacted copy with
    the number of replacements. Values become [REDACTED_EMAIL] style markers,
    which are not mapping tokens and are never rehydrated.
    """
    count = 0

    def replace(match: re.Match) -> str:
        nonlocal count
        count += 1
        return f"[REDACTED_{match.lastgroup}]"

    def walk(value: Any) -> Any:
        if isinstance(value, str):
            return _REDACTIONS.sub(replace, value)
        if isinstance(value, dict):
            return {key: walk(item) for key, item in value.items()}
        if isinstance(value, list):
            return [walk(item) for item in value]
        return value

    return walk(content), count
