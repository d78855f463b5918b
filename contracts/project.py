"""Project profile contracts.

ProjectProfile is the raw input supplied by the caller. SanitizedProjectData is
the only form of it that ever reaches a prompt or the cache.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Methodology(str, Enum):
    """Project-management framework that decides the document set."""
    AGILE = "agile"
    PRINCE2 = "prince2"
    HYBRID = "hybrid"


class StakeholderContact(BaseModel):
    """A named person attached to the project."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    email: str = ""
    title: str = ""


class Prince2Board(BaseModel):
    """PRINCE2 project board members."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    senior_user: StakeholderContact = Field(
        default_factory=StakeholderContact,
        validation_alias=AliasChoices("senior_user", "seniorUser"),
    )
    senior_supplier: StakeholderContact = Field(
        default_factory=StakeholderContact,
        validation_alias=AliasChoices("senior_supplier", "seniorSupplier"),
    )
    executive: StakeholderContact = Field(default_factory=StakeholderContact)


class ProjectProfile(BaseModel):
    """Raw project profile as entered by the user.

    Accepts both snake_case and the camelCase keys sent by the project wizard.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(
        default="",
        validation_alias=AliasChoices("name", "projectName", "project_name"),
    )
    vision: str = ""
    business_case: str = Field(
        default="",
        validation_alias=AliasChoices("business_case", "businessCase"),
    )
    description: str = ""
    methodology: Methodology = Methodology.AGILE
    company_website: str = Field(
        default="",
        validation_alias=AliasChoices("company_website", "companyWebsite"),
    )
    sector: str = ""
    budget: str = ""
    timeline: str = ""
    start_date: str = Field(
        default="",
        validation_alias=AliasChoices("start_date", "startDate"),
    )
    end_date: str = Field(
        default="",
        validation_alias=AliasChoices("end_date", "endDate"),
    )
    stakeholders: List[StakeholderContact] = Field(default_factory=list)
    prince2_stakeholders: Optional[Prince2Board] = Field(
        default=None,
        validation_alias=AliasChoices("prince2_stakeholders", "prince2Stakeholders"),
    )
    agilometer: Optional[Dict[str, int]] = Field(
        default=None,
        description="Agility scores (flexibility, team experience, risk tolerance, ...)",
    )


class SanitizedStakeholder(BaseModel):
    """Stakeholder as seen by the model: a role and opaque tokens."""

    model_config = ConfigDict(frozen=True)

    role: str
    placeholder: str = Field(..., description="Token standing in for the stakeholder's name")
    contact_placeholder: Optional[str] = Field(
        None, description="Token standing in for the stakeholder's e-mail"
    )


class SanitizedBoard(BaseModel):
    """PRINCE2 board with names replaced by role tokens."""

    model_config = ConfigDict(frozen=True)

    senior_user: SanitizedStakeholder
    senior_supplier: SanitizedStakeholder
    executive: SanitizedStakeholder


class SanitizedProjectData(BaseModel):
    """ProjectProfile with all personal data replaced by placeholder tokens."""

    model_config = ConfigDict(frozen=True)

    project_name: str
    vision: str = ""
    business_case: str = ""
    description: str = ""
    methodology: Methodology = Methodology.AGILE
    company_website: str = ""
    sector: str = ""
    budget: str = ""
    timeline: str = ""
    start_date: str = ""
    end_date: str = ""
    stakeholders: List[SanitizedStakeholder] = Field(default_factory=list)
    prince2_stakeholders: Optional[SanitizedBoard] = None
    agilometer: Optional[Dict[str, int]] = None

    def fingerprint_payload(self) -> Dict[str, Any]:
        """Fields that influence generated output, in canonical JSON-ready form."""
        return self.model_dump(mode="json")

    def stakeholder_lines(self) -> str:
        """Render the stakeholder list the way prompts expect it."""
        lines = [f"- {s.placeholder}: {s.role}" for s in self.stakeholders]
        if self.prince2_stakeholders:
            board = self.prince2_stakeholders
            for member in (board.executive, board.senior_user, board.senior_supplier):
                lines.append(f"- {member.placeholder}: {member.role}")
        return "\n".join(lines)
