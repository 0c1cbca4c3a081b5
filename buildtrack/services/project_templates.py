"""
Project-type templates.

Each project type ships a phase plan (share of budget, duration) and a set of
starter tasks tagged with their phase and priority. Applying a template seeds
``project_phases`` and ``pending`` tasks, which is what the progress engine
then measures.

Usage:
    from buildtrack.services.project_templates import apply_project_template

    counts = apply_project_template(project)   # {"phases_created": 5, "tasks_created": 12}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from buildtrack.core.exceptions import ConflictError, ValidationError
from buildtrack.models import db
from buildtrack.models.project import Project, ProjectPhasePlan, Task

logger = logging.getLogger(__name__)

# Budget assumed when the project has none, so percentages still yield amounts
DEFAULT_TEMPLATE_BUDGET = Decimal("1000000")


@dataclass(frozen=True)
class PhaseTemplate:
    phase: str
    budget_percentage: int | None = None
    duration_weeks: int | None = None


@dataclass(frozen=True)
class TaskTemplate:
    title: str
    description: str
    phase: str
    priority: str = "medium"
    ai_generated: bool = False


@dataclass(frozen=True)
class ProjectTemplate:
    type: str
    name: str
    description: str
    emphasis: tuple[str, ...] = ()
    phases: tuple[PhaseTemplate, ...] = ()
    tasks: tuple[TaskTemplate, ...] = ()
    estimated_duration_weeks: int | None = None
    budget_range: tuple[int, int] | None = None
    certifications: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "emphasis": list(self.emphasis),
            "phases": [
                {
                    "phase": p.phase,
                    "budget_percentage": p.budget_percentage,
                    "duration_weeks": p.duration_weeks,
                }
                for p in self.phases
            ],
            "tasks": [
                {
                    "title": t.title,
                    "description": t.description,
                    "phase": t.phase,
                    "priority": t.priority,
                    "ai_generated": t.ai_generated,
                }
                for t in self.tasks
            ],
            "estimated_duration_weeks": self.estimated_duration_weeks,
            "budget_range": list(self.budget_range) if self.budget_range else None,
            "certifications": list(self.certifications),
        }


def _phases(*rows: tuple[str, int, int]) -> tuple[PhaseTemplate, ...]:
    return tuple(PhaseTemplate(phase, pct, weeks) for phase, pct, weeks in rows)


def _tasks(*rows: tuple[str, str, str, str, bool]) -> tuple[TaskTemplate, ...]:
    return tuple(TaskTemplate(*row) for row in rows)


PROJECT_TEMPLATES: dict[str, ProjectTemplate] = {
    "new_construction": ProjectTemplate(
        type="new_construction",
        name="New Construction",
        description="Full lifecycle construction from ground up with BIM-based planning "
                    "and sustainability compliance.",
        emphasis=("Full lifecycle", "BIM-based planning", "Permits", "Sustainability compliance"),
        phases=_phases(
            ("concept", 5, 4),
            ("design", 15, 12),
            ("pre_construction", 10, 8),
            ("execution", 65, 52),
            ("handover", 5, 4),
        ),
        tasks=_tasks(
            ("Site Survey & Analysis", "Conduct comprehensive site evaluation", "concept", "high", True),
            ("Feasibility Study", "Market analysis and ROI projections", "concept", "high", True),
            ("Zoning Compliance Check", "Verify compliance with local regulations", "concept", "medium", True),
            ("Architectural Design", "Create detailed architectural plans", "design", "high", False),
            ("BIM Model Development", "Develop comprehensive 3D BIM model", "design", "high", True),
            ("Energy Simulation", "Perform energy efficiency analysis", "design", "medium", True),
            ("Permit Applications", "Submit all required construction permits", "pre_construction", "high", True),
            ("Contractor Selection", "Bid evaluation and contractor selection", "pre_construction", "high", False),
            ("Foundation Work", "Excavation and foundation construction", "execution", "high", False),
            ("Quality Inspections", "Regular quality control inspections", "execution", "high", True),
            ("Final Inspections", "Complete all final inspections", "handover", "high", False),
            ("Occupancy Certificate", "Obtain final occupancy certificate", "handover", "high", True),
        ),
        estimated_duration_weeks=78,
        budget_range=(500000, 5000000),
        certifications=("leed", "iso"),
    ),
    "renovation_repair": ProjectTemplate(
        type="renovation_repair",
        name="Renovation & Repair",
        description="Renovation projects with focus on scope definition, permits, and material reuse.",
        emphasis=("Scope definition", "Demolition permits", "Material reuse"),
        phases=_phases(
            ("concept", 10, 3),
            ("design", 20, 8),
            ("pre_construction", 15, 4),
            ("execution", 50, 20),
            ("handover", 5, 2),
        ),
        tasks=_tasks(
            ("Existing Structure Assessment", "Evaluate current building condition", "concept", "high", True),
            ("Demolition Planning", "Plan selective demolition strategy", "design", "high", True),
            ("Hazardous Material Survey", "Identify and plan removal of hazardous materials",
             "design", "high", True),
            ("Demolition Permits", "Obtain required demolition permits", "pre_construction", "high", True),
            ("Material Recovery Plan", "Plan for salvage and reuse of materials",
             "pre_construction", "medium", True),
            ("Selective Demolition", "Execute controlled demolition", "execution", "high", False),
            ("Renovation Work", "Complete renovation construction", "execution", "high", False),
        ),
        estimated_duration_weeks=37,
        budget_range=(100000, 2000000),
        certifications=("iso",),
    ),
    "interior_fitout": ProjectTemplate(
        type="interior_fitout",
        name="Interior & Fit-Out",
        description="Interior projects with space optimization, quick approvals, and efficient procurement.",
        emphasis=("Space optimization", "Quick approvals", "Material procurement"),
        phases=_phases(
            ("concept", 10, 2),
            ("design", 25, 6),
            ("pre_construction", 10, 3),
            ("execution", 50, 12),
            ("handover", 5, 1),
        ),
        tasks=_tasks(
            ("Space Planning", "Optimize layout for functionality", "concept", "high", True),
            ("Interior Design Concepts", "Develop design themes and concepts", "design", "high", True),
            ("Material Selection", "Select finishes and furniture", "design", "medium", True),
            ("MEP Coordination", "Coordinate mechanical, electrical, plumbing", "pre_construction", "high", False),
            ("Fit-out Construction", "Execute interior construction work", "execution", "high", False),
            ("Smart Systems Installation", "Install automation and smart systems", "execution", "medium", True),
        ),
        estimated_duration_weeks=24,
        budget_range=(50000, 1000000),
        certifications=("well",),
    ),
    "land_development": ProjectTemplate(
        type="land_development",
        name="Land & Site Development",
        description="Site development with grading, drainage, and landscape compliance.",
        emphasis=("Site grading", "Drainage", "Landscape compliance"),
        phases=_phases(
            ("concept", 15, 6),
            ("design", 20, 10),
            ("pre_construction", 15, 8),
            ("execution", 45, 24),
            ("handover", 5, 2),
        ),
        tasks=_tasks(
            ("Topographic Survey", "Detailed site survey and mapping", "concept", "high", True),
            ("Environmental Impact Assessment", "Evaluate environmental impacts", "concept", "high", True),
            ("Grading Plan", "Design site grading and earthwork", "design", "high", True),
            ("Drainage Design", "Design stormwater management systems", "design", "high", True),
            ("Landscape Design", "Plan landscaping and green spaces", "design", "medium", True),
            ("Environmental Permits", "Obtain environmental approvals", "pre_construction", "high", True),
            ("Site Preparation", "Clear and prepare development site", "execution", "high", False),
            ("Infrastructure Installation", "Install utilities and infrastructure", "execution", "high", False),
        ),
        estimated_duration_weeks=50,
        budget_range=(200000, 3000000),
        certifications=("other",),
    ),
    "sustainable_green": ProjectTemplate(
        type="sustainable_green",
        name="Sustainable / Green Building",
        description="Green building projects focused on LEED/IGBC/BREEAM certification.",
        emphasis=("LEED/IGBC/BREEAM certification",),
        phases=_phases(
            ("concept", 8, 6),
            ("design", 22, 16),
            ("pre_construction", 12, 8),
            ("execution", 53, 48),
            ("handover", 5, 4),
        ),
        tasks=_tasks(
            ("Sustainability Goals Definition", "Define green building targets", "concept", "high", True),
            ("Energy Modeling", "Comprehensive energy performance modeling", "design", "high", True),
            ("Sustainable Material Selection", "Select eco-friendly materials", "design", "high", True),
            ("Green Technology Integration", "Plan renewable energy systems", "design", "medium", True),
            ("Commissioning Plan", "Plan building systems commissioning", "pre_construction", "high", True),
            ("Green Construction Practices", "Implement sustainable construction methods",
             "execution", "high", True),
            ("Performance Monitoring Setup", "Install monitoring systems", "execution", "medium", True),
            ("Certification Documentation", "Compile certification submissions", "handover", "high", True),
        ),
        estimated_duration_weeks=82,
        budget_range=(800000, 8000000),
        certifications=("leed", "breeam", "energy_star"),
    ),
    "affordable_housing": ProjectTemplate(
        type="affordable_housing",
        name="Affordable Housing",
        description="Cost-optimized housing with speed, efficiency, and government compliance.",
        emphasis=("Cost optimization", "Speed", "Government compliance"),
        phases=_phases(
            ("concept", 8, 4),
            ("design", 12, 8),
            ("pre_construction", 15, 6),
            ("execution", 60, 32),
            ("handover", 5, 2),
        ),
        tasks=_tasks(
            ("Affordability Study", "Analyze cost constraints and targets", "concept", "high", True),
            ("Subsidy Application", "Apply for government housing subsidies", "concept", "high", True),
            ("Standardized Design", "Create repeatable unit designs", "design", "high", True),
            ("Prefabrication Planning", "Plan modular construction approach", "design", "medium", True),
            ("Bulk Procurement", "Organize bulk material purchasing", "pre_construction", "high", True),
            ("Rapid Construction", "Execute fast-track construction", "execution", "high", False),
        ),
        estimated_duration_weeks=52,
        budget_range=(300000, 2000000),
        certifications=("iso",),
    ),
    "luxury": ProjectTemplate(
        type="luxury",
        name="Luxury / High-End Development",
        description="Premium developments with luxury interiors, smart automation, "
                    "and resort-style amenities.",
        emphasis=("Premium interiors", "Smart automation", "Resort-style amenities"),
        phases=_phases(
            ("concept", 5, 6),
            ("design", 18, 20),
            ("pre_construction", 12, 10),
            ("execution", 60, 64),
            ("handover", 5, 6),
        ),
        tasks=_tasks(
            ("Luxury Market Analysis", "Research high-end market demands", "concept", "high", True),
            ("Premium Design Development", "Create luxury architectural designs", "design", "high", True),
            ("Smart Home Integration", "Plan advanced automation systems", "design", "high", True),
            ("Amenity Design", "Design resort-style facilities", "design", "medium", True),
            ("Luxury Material Procurement", "Source premium materials and finishes",
             "pre_construction", "high", False),
            ("High-End Construction", "Execute luxury construction standards", "execution", "high", False),
            ("Smart Systems Installation", "Install premium automation systems", "execution", "high", False),
        ),
        estimated_duration_weeks=106,
        budget_range=(2000000, 20000000),
        certifications=("well", "leed"),
    ),
    "mixed_use": ProjectTemplate(
        type="mixed_use",
        name="Mixed-Use Development",
        description="Integrated residential, commercial, and retail developments.",
        emphasis=("Integration of residential + commercial + retail",),
        phases=_phases(
            ("concept", 8, 8),
            ("design", 18, 20),
            ("pre_construction", 12, 12),
            ("execution", 57, 72),
            ("handover", 5, 4),
        ),
        tasks=_tasks(
            ("Mixed-Use Feasibility", "Analyze viability of mixed-use concept", "concept", "high", True),
            ("Zoning Analysis", "Verify compliance with mixed-use zoning", "concept", "high", True),
            ("Integrated Design", "Design integrated building systems", "design", "high", True),
            ("Traffic Flow Analysis", "Simulate pedestrian and vehicle flow", "design", "medium", True),
            ("Multi-Tenant Planning", "Plan flexible tenant spaces", "design", "high", True),
            ("Phased Construction", "Execute multi-phase construction", "execution", "high", False),
        ),
        estimated_duration_weeks=116,
        budget_range=(3000000, 30000000),
        certifications=("leed",),
    ),
    "co_living_working": ProjectTemplate(
        type="co_living_working",
        name="Co-living / Co-working Spaces",
        description="Flexible spaces with modern interiors, IoT integration, and quick turnover capability.",
        emphasis=("Flexibility", "Modern interiors", "Quick turnover"),
        phases=_phases(
            ("concept", 12, 4),
            ("design", 25, 10),
            ("pre_construction", 13, 4),
            ("execution", 45, 16),
            ("handover", 5, 2),
        ),
        tasks=_tasks(
            ("Space Utilization Study", "Optimize shared space efficiency", "concept", "high", True),
            ("Flexible Design System", "Create adaptable space layouts", "design", "high", True),
            ("IoT Infrastructure Planning", "Plan smart booking and usage systems", "design", "high", True),
            ("Community Amenity Design", "Design shared amenity spaces", "design", "medium", True),
            ("Smart Technology Installation", "Install IoT and booking systems", "execution", "high", False),
            ("Flexible Fit-out", "Complete adaptable interior fit-out", "execution", "high", False),
        ),
        estimated_duration_weeks=36,
        budget_range=(400000, 4000000),
        certifications=("well",),
    ),
    "redevelopment": ProjectTemplate(
        type="redevelopment",
        name="Redevelopment Projects",
        description="Urban renewal projects with demolition, rehab, and sustainability focus.",
        emphasis=("Demolition", "Slum rehab", "Urban renewal"),
        phases=_phases(
            ("concept", 15, 8),
            ("design", 20, 16),
            ("pre_construction", 15, 12),
            ("execution", 45, 52),
            ("handover", 5, 4),
        ),
        tasks=_tasks(
            ("Urban Analysis Study", "Analyze existing urban conditions", "concept", "high", True),
            ("Resettlement Planning", "Plan temporary and permanent resettlement", "concept", "high", True),
            ("Demolition Strategy", "Plan systematic demolition approach", "design", "high", True),
            ("Material Recovery Plan", "Maximize material reuse and recycling", "design", "medium", True),
            ("Community Engagement", "Engage with affected communities", "pre_construction", "high", False),
            ("Controlled Demolition", "Execute safe demolition operations", "execution", "high", False),
            ("New Construction", "Build replacement structures", "execution", "high", False),
        ),
        estimated_duration_weeks=92,
        budget_range=(1000000, 15000000),
        certifications=("iso", "other"),
    ),
}


def get_project_template(project_type: str) -> ProjectTemplate | None:
    return PROJECT_TEMPLATES.get(project_type)


def list_project_templates() -> list[ProjectTemplate]:
    return list(PROJECT_TEMPLATES.values())


def apply_project_template(
    project: Project,
    *,
    total_budget: Decimal | int | float | None = None,
    user_id: str | None = None,
) -> dict:
    """Seed phase plans and pending tasks for ``project`` from its type's template.

    Uses ``flush``; the caller commits.

    Raises:
        ValidationError: no template exists for the project's type.
        ConflictError: the project already has phase plans.
    """
    template = get_project_template(project.project_type)
    if template is None:
        raise ValidationError(
            f"No template for project type '{project.project_type}'",
            details={"project_type": "no template available"},
        )

    if project.phase_plans.count():
        raise ConflictError(resource="ProjectPhasePlan", field="project_id", value=str(project.id))

    if total_budget is None:
        total_budget = project.budget if project.budget is not None else DEFAULT_TEMPLATE_BUDGET
    total_budget = Decimal(str(total_budget))

    for phase in template.phases:
        budget = None
        if phase.budget_percentage:
            budget = (total_budget * phase.budget_percentage / 100).quantize(Decimal("0.01"))
        db.session.add(ProjectPhasePlan(
            project_id=project.id,
            phase=phase.phase,
            status="planning",
            budget=budget,
            duration_weeks=phase.duration_weeks,
        ))

    for task in template.tasks:
        db.session.add(Task(
            project_id=project.id,
            title=task.title,
            description=task.description,
            phase=task.phase,
            priority=task.priority,
            ai_generated=task.ai_generated,
            created_by=user_id,
            status="pending",
        ))

    db.session.flush()
    logger.info(
        "Applied %s template to project %s: %d phases, %d tasks",
        template.type, project.id, len(template.phases), len(template.tasks),
        extra={"project_id": project.id, "event_type": "template_applied"},
    )
    return {
        "phases_created": len(template.phases),
        "tasks_created": len(template.tasks),
    }
