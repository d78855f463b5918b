"""Static, schema-valid default content.

Used when every model attempt for a document (or one section of a large
document) failed. Defaults only reference sanitized data, so they can go
through rehydration like model output.
"""

from typing import Any, Dict

from contracts.project import SanitizedProjectData


def _name(data: SanitizedProjectData) -> str:
    return data.project_name or "The project"


def _timescale(data: SanitizedProjectData) -> str:
    if data.start_date and data.end_date:
        return f"{data.start_date} to {data.end_date}"
    return data.timeline or "3-6 months"


def _budget(data: SanitizedProjectData) -> str:
    return data.budget or "TBD"


def _board(data: SanitizedProjectData) -> Dict[str, str]:
    board = data.prince2_stakeholders
    if board is None:
        return {
            "executive": "Executive Sponsor",
            "senior_user": "Senior User Representative",
            "senior_supplier": "Senior Supplier Representative",
        }
    return {
        "executive": board.executive.placeholder,
        "senior_user": board.senior_user.placeholder,
        "senior_supplier": board.senior_supplier.placeholder,
    }


def _stakeholders(data: SanitizedProjectData) -> list:
    return [
        {"name": s.placeholder, "role": s.role, "responsibilities": []}
        for s in data.stakeholders
    ]


# --- Research ---------------------------------------------------------------


def default_technical_landscape(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "summary": f"Technical landscape for {_name(data)} could not be generated; review manually.",
        "recommendations": {"technologies": [], "architecture": []},
        "security": {"considerations": [], "compliance": []},
        "scalability": {"recommendations": []},
        "risks": [],
    }


def default_comparable_projects(data: SanitizedProjectData) -> Dict[str, Any]:
    return {"industry_analysis": [], "projects": []}


# --- Agile / Hybrid ---------------------------------------------------------


def default_charter(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "project_name": _name(data),
        "vision": data.vision or f"Deliver {_name(data)}",
        "objectives": [
            "Deliver a working product increment every sprint",
            "Meet stakeholder requirements",
            "Complete within the agreed timeline",
        ],
        "scope_in": ["Core functionality", "Key requirements"],
        "scope_out": ["Future enhancements"],
        "stakeholders": _stakeholders(data),
        "success_criteria": [
            {"criterion": "Stakeholder acceptance", "metric": "Sign-off", "target": "All key stakeholders"},
        ],
        "assumptions": ["Resources available as planned", "Stakeholder availability for reviews"],
        "constraints": [f"Timeline: {_timescale(data)}", f"Budget: {_budget(data)}"],
        "risks": ["Scope creep", "Resource availability"],
        "team_structure": ["Product Owner", "Scrum Master", "Development Team"],
    }


def default_backlog(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "product_vision": data.vision or f"Deliver {_name(data)}",
        "epics": [
            {
                "id": "EPIC-1",
                "title": "Core functionality",
                "description": "Foundational features required for the first release",
                "user_stories": [
                    {
                        "id": "US-1",
                        "title": "Initial setup",
                        "as_a": "product owner",
                        "i_want": "the project foundations in place",
                        "so_that": "the team can deliver features",
                        "acceptance_criteria": ["Environment ready", "Pipeline running"],
                        "story_points": 3,
                        "priority": "must",
                    }
                ],
            }
        ],
        "definition_of_done": ["Code reviewed", "Tests passing", "Accepted by product owner"],
    }


def default_sprint_plan(data: SanitizedProjectData) -> str:
    return (
        f"# Sprint Plan: {_name(data)}\n\n"
        "## Sprint Goal\nEstablish the project foundations and deliver the first increment.\n\n"
        "## Duration\n2 weeks\n\n"
        "## Selected Stories\n- Initial setup (3 points)\n\n"
        "## Risks\n- Team onboarding time\n\n"
        "## Definition of Done\n- Code reviewed\n- Tests passing\n- Accepted by product owner\n"
    )


def default_hybrid_charter(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "project_name": _name(data),
        "vision": data.vision or f"Deliver {_name(data)}",
        "objectives": ["Deliver business value incrementally", "Maintain governance control"],
        "governance_stages": [
            {"name": "Initiation", "description": "Define and approve the project", "deliverables": ["Charter"]},
            {"name": "Delivery", "description": "Iterative delivery in sprints", "deliverables": ["Increments"]},
            {"name": "Closure", "description": "Hand over and close", "deliverables": ["End project report"]},
        ],
        "agile_practices": ["Sprints", "Daily stand-ups", "Sprint reviews"],
        "tolerances": ["Time: +/- 10%", "Cost: +/- 15%"],
        "stakeholders": _stakeholders(data),
        "success_criteria": [{"criterion": "Board acceptance", "metric": "Sign-off", "target": "Project Board"}],
        "risks": ["Governance overhead slowing delivery"],
    }


# --- PID sections -----------------------------------------------------------


def default_project_definition(data: SanitizedProjectData) -> Dict[str, Any]:
    background = _name(data)
    if data.business_case:
        background = f"{background}: {data.business_case}"
    return {
        "project_definition": {
            "background": background,
            "objectives": ["Deliver project successfully", "Meet stakeholder requirements", "Complete within timeline"],
            "desired_outcomes": ["Successful implementation", "Business value delivered"],
            "scope": {
                "included": ["Core functionality", "Key requirements"],
                "excluded": ["Future enhancements"],
            },
            "constraints": [f"Time: {_timescale(data)}", f"Budget: {_budget(data)}"],
            "assumptions": ["Resources available as planned", "Stakeholder support"],
            "deliverables": [
                {
                    "name": "Primary Deliverable",
                    "description": "Main project output",
                    "quality_criteria": ["Meets requirements", "Stakeholder approval"],
                }
            ],
            "interfaces": ["External systems", "Stakeholder touchpoints"],
        }
    }


def default_pid_business_case(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "business_case": {
            "reasons": data.business_case or f"Business justification for {_name(data)}",
            "options": ["Do nothing", "Do minimum", "Recommended approach"],
            "expected_benefits": ["Improved efficiency", "Better user experience"],
            "expected_disbenefits": ["Initial disruption", "Training required"],
            "timescale": _timescale(data),
            "costs": {"development": _budget(data), "operational": "TBD", "total": _budget(data)},
            "investment_appraisal": "Positive return expected; to be confirmed at stage end",
            "major_risks": ["Implementation challenges", "Resource availability"],
        }
    }


def default_organization_structure(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "organization_structure": {
            "project_board": _board(data),
            "project_manager": "Project Manager",
            "team_managers": ["Development Lead", "QA Lead"],
            "project_assurance": {
                "business": "Business Assurance",
                "user": "User Assurance",
                "specialist": "Technical Assurance",
            },
            "project_support": "PMO Support",
        }
    }


def default_quality_approach(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "quality_management_approach": {
            "quality_standards": ["ISO 9001", "Industry standards"],
            "quality_criteria": ["Meets requirements", "Passes testing"],
            "quality_method": "Regular quality reviews and testing",
            "quality_responsibilities": "Project Assurance with the quality team",
        }
    }


def default_configuration_approach(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "configuration_management_approach": {
            "purpose": "Keep products and their versions under control",
            "procedure": "Version control and baselining at each stage boundary",
            "issue_and_change_control": "Formal change control through the Project Board",
            "tools_and_techniques": ["Version control", "Issue tracker"],
        }
    }


def default_risk_approach(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "risk_management_approach": {
            "procedure": "Identify, assess, plan, implement, communicate",
            "tools_and_techniques": ["Risk register", "Probability-impact grid"],
            "reporting": "Risk summary in every highlight report",
            "timing_of_risk_management_activities": "At each stage boundary and weekly reviews",
            "roles_and_responsibilities": [
                {"role": "Project Manager", "responsibilities": ["Maintain the risk register"]},
            ],
            "risk_tolerance": {
                "time": "+/- 10%",
                "cost": "+/- 15%",
                "quality": "No reduction in agreed quality criteria",
                "scope": "No change without approval",
                "benefits": "At least 80% of expected benefits",
                "risk": "No high risks without an owner",
            },
            "risk_categories": ["Technical", "Commercial", "Organisational"],
            "risk_register_format": "Standard risk register template",
        }
    }


def default_communication_approach(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "communication_management_approach": {
            "procedure": "Planned communications per stakeholder group",
            "tools_and_techniques": ["Email", "Meetings", "Reports"],
            "reporting": "Weekly highlight reports to the Project Board",
            "roles_and_responsibilities": "Project Manager owns the communication plan",
            "methods": ["Email", "Meetings", "Reports"],
            "frequency": "Weekly",
            "stakeholder_analysis": [
                {
                    "stakeholder": s.placeholder,
                    "interest": "High",
                    "influence": "Medium",
                    "communication_method": "Meetings",
                    "frequency": "Weekly",
                }
                for s in data.stakeholders
            ],
        }
    }


def default_pid_project_plan(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "project_plan": {
            "stages": [
                {"name": name, "start_date": "", "end_date": "", "objectives": [], "deliverables": []}
                for name in ("Initiation", "Development", "Testing", "Deployment")
            ],
            "milestones": [
                {"name": "Project kickoff", "date": data.start_date, "criteria": "PID approved"},
                {"name": "Go-live", "date": data.end_date, "criteria": "Acceptance complete"},
            ],
            "dependencies": [
                {"type": "external", "description": "Resource availability", "impact": "Schedule"},
            ],
            "schedule": _timescale(data),
        }
    }


def default_project_controls(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "project_controls": {
            "stages": ["Initiation", "Delivery", "Closure"],
            "tolerances": {
                "time": "+/- 10%",
                "cost": "+/- 15%",
                "scope": "No changes without approval",
                "quality": "Must meet agreed standards",
            },
            "reporting_arrangements": "Weekly highlight reports; end stage reports to the Project Board",
        }
    }


def default_tailoring(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "tailoring": {
            "justification": "Tailored to project size and complexity",
            "applied_tailoring": [],
        }
    }


def default_pid(data: SanitizedProjectData) -> Dict[str, Any]:
    content: Dict[str, Any] = {}
    for builder in (
        default_project_definition,
        default_pid_business_case,
        default_organization_structure,
        default_quality_approach,
        default_configuration_approach,
        default_risk_approach,
        default_communication_approach,
        default_pid_project_plan,
        default_project_controls,
        default_tailoring,
    ):
        content.update(builder(data))
    return content


# --- Business case sections -------------------------------------------------


def default_business_case_summary(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "executive_summary": f"Executive summary for {_name(data)}",
        "reasons": data.business_case or "Business reasons for the project",
    }


def default_business_options(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "business_options": [
            {
                "option": "Do Nothing",
                "description": "Continue with current state",
                "costs": "$0",
                "benefits": "No disruption",
                "risks": "Missed opportunities",
            },
            {
                "option": "Do Minimum",
                "description": "Basic implementation",
                "costs": "Part of budget",
                "benefits": "Some improvement",
                "risks": "May not meet all needs",
            },
            {
                "option": "Recommended Solution",
                "description": "Full implementation",
                "costs": _budget(data),
                "benefits": "All objectives achieved",
                "risks": "Implementation complexity",
            },
        ]
    }


def default_benefits(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "expected_benefits": [
            {"benefit": "Improved efficiency", "measurable": True, "measurement": "Process time"},
            {"benefit": "Better user experience", "measurable": False},
        ],
        "expected_dis_benefits": [{"disbenefit": "Initial disruption", "impact": "Short term"}],
    }


def default_business_case_financials(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "timescale": _timescale(data),
        "costs": {"development": _budget(data), "operational": "TBD", "total": _budget(data)},
        "investment_appraisal": {"roi": "TBD", "payback_period": "TBD", "npv": "TBD"},
        "major_risks": ["Implementation risk", "Budget risk", "Timeline risk"],
    }


def default_business_case(data: SanitizedProjectData) -> Dict[str, Any]:
    content: Dict[str, Any] = {}
    for builder in (
        default_business_case_summary,
        default_business_options,
        default_benefits,
        default_business_case_financials,
    ):
        content.update(builder(data))
    return content


# --- Other PRINCE2 products -------------------------------------------------


def default_risk_register(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "risks": [
            {
                "id": "R-001",
                "description": "Key resources are not available when needed",
                "category": "Organisational",
                "probability": "medium",
                "impact": "high",
                "owner": "Project Manager",
                "response": "Reduce: agree resource commitments at initiation",
                "status": "open",
            },
            {
                "id": "R-002",
                "description": "Requirements change during delivery",
                "category": "Commercial",
                "probability": "medium",
                "impact": "medium",
                "owner": "Senior User",
                "response": "Reduce: formal change control",
                "status": "open",
            },
        ],
        "risk_appetite": "Moderate",
        "review_frequency": "Weekly",
    }


def default_project_plan(data: SanitizedProjectData) -> Dict[str, Any]:
    plan = default_pid_project_plan(data)["project_plan"]
    return {
        "overview": f"Stage plan for {_name(data)} over {_timescale(data)}",
        "stages": plan["stages"],
        "milestones": plan["milestones"],
        "dependencies": plan["dependencies"],
        "assumptions": ["Resources available as planned"],
    }


def default_quality_management(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "introduction": f"Quality management strategy for {_name(data)}",
        "quality_standards": ["ISO 9001", "Industry standards"],
        "quality_criteria": ["Meets requirements", "Passes testing"],
        "quality_methods": ["Peer review", "Testing", "Stage gate reviews"],
        "roles_and_responsibilities": [
            {"role": "Project Assurance", "responsibilities": ["Independent quality checks"]},
        ],
        "quality_records": ["Quality register", "Test reports"],
    }


def default_communication_plan(data: SanitizedProjectData) -> Dict[str, Any]:
    return {
        "purpose": f"Communication management strategy for {_name(data)}",
        "stakeholder_analysis": default_communication_approach(data)[
            "communication_management_approach"
        ]["stakeholder_analysis"],
        "communications": [
            {
                "audience": "Project Board",
                "information": "Highlight report",
                "method": "Email",
                "frequency": "Weekly",
                "owner": "Project Manager",
            }
        ],
        "escalation_process": "Exceptions escalated to the Project Board",
    }
