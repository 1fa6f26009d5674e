"""Team composer - groups required capabilities into agents."""

from pathlib import Path
from typing import Optional
import logging

from pydantic import BaseModel, Field

from ..models import ALL_PHASES, AgentSpec, ProjectConfig

logger = logging.getLogger(__name__)

CAPABILITY_CATEGORIES = ("technical", "business", "creative", "legal", "research")


class CapabilityGroup(BaseModel):
    """One agent role: the capabilities it covers and where it works."""
    
    key: str
    role: str
    capabilities: tuple[str, ...] = ()
    phase: str = ALL_PHASES
    """Preferred phase."""
    
    fallback_phase: str = ALL_PHASES
    """Used when the project does not declare the preferred phase."""
    
    def resolve_phase(self, phases: list[str]) -> str:
        if self.phase == ALL_PHASES or self.phase in phases:
            return self.phase
        return self.fallback_phase


# Groups are tried in order; a capability belongs to the first group listing it.
CAPABILITY_GROUPS: tuple[CapabilityGroup, ...] = (
    CapabilityGroup(
        key="business",
        role="Business Strategist",
        capabilities=("business-modeling", "mvp-planning", "pricing-strategy", "market-analysis"),
        phase="conception",
        fallback_phase="conception",
    ),
    CapabilityGroup(
        key="architecture",
        role="Solution Architect",
        capabilities=("system-architecture", "database-design", "api-design"),
        phase="technical-design",
        fallback_phase="conception",
    ),
    CapabilityGroup(
        key="design",
        role="UX Designer",
        capabilities=("ux-design", "responsive-design", "mobile-optimization"),
        phase="technical-design",
        fallback_phase="conception",
    ),
    CapabilityGroup(
        key="development",
        role="Developer",
        capabilities=("frontend-development", "backend-development"),
        phase="development",
        fallback_phase=ALL_PHASES,
    ),
    CapabilityGroup(
        key="compliance",
        role="Compliance Specialist",
        capabilities=("gdpr-compliance", "legal-review", "data-protection"),
    ),
)

GENERALIST_GROUP = CapabilityGroup(key="generalist", role="Generalist")
"""Catches every capability no other group lists."""


class TeamComposition(BaseModel):
    """Result of composing a team for a project."""
    
    agents: list[AgentSpec] = Field(default_factory=list)
    gaps: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


def load_capability_names(capabilities_dir: Path | str) -> set[str]:
    """
    List the capabilities defined under ``<category>/<name>.md``.
    
    Missing category directories are ignored.
    """
    root = Path(capabilities_dir)
    names = set()
    
    for category in CAPABILITY_CATEGORIES:
        category_dir = root / category
        if not category_dir.is_dir():
            continue
        names.update(path.stem for path in category_dir.glob("*.md"))
    
    logger.info(f"Loaded {len(names)} capabilities from {root}")
    return names


def agent_context(capabilities: list[str], project: ProjectConfig) -> str:
    """Short context line describing what an agent should keep in mind."""
    parts = [project.project_type]
    if project.domains:
        parts.append("/".join(project.domains))
    
    complexity = (project.context or {}).get("complexity")
    if complexity:
        parts.append(f"{complexity} complexity")
    
    if any("business" in cap for cap in capabilities):
        parts.append("MVP focus, bootstrap budget")
    if "gdpr-compliance" in capabilities:
        parts.append("German law, customer data protection")
    if "ux-design" in capabilities:
        parts.append("Simple UI for non-technical users")
    
    return ", ".join(parts)


def suggest_capabilities(project: ProjectConfig, covered: set[str]) -> list[str]:
    suggestions = []
    
    if "saas" in project.project_type:
        if "pricing-strategy" not in covered:
            suggestions.append("Consider adding pricing-strategy capability for SaaS monetization")
        if "market-analysis" not in covered:
            suggestions.append("Consider adding market-analysis capability for SaaS positioning")
    
    if (project.context or {}).get("complexity") == "high" and "devops" not in covered:
        suggestions.append("Consider adding devops capability for deployment and scaling")
    
    if "legal-compliance" in project.domains and "gdpr-compliance" not in covered:
        suggestions.append("GDPR compliance capability is critical for this project")
    
    return suggestions


def compose_team(
    project: ProjectConfig,
    available: Optional[set[str]] = None,
    groups: tuple[CapabilityGroup, ...] = CAPABILITY_GROUPS,
) -> TeamComposition:
    """
    Build a team covering the project's required capabilities.
    
    Args:
        project: Project configuration (required capabilities and phases)
        available: Capabilities that exist in the library; None means all
        groups: Capability grouping table
    
    Returns:
        Agents numbered ``agent-01``, ``agent-02``..., plus gaps and
        recommendations
    """
    required = list(dict.fromkeys(project.required_capabilities))
    gaps = []
    covered = []
    
    for cap in required:
        if available is None or cap in available:
            covered.append(cap)
        else:
            gaps.append(f"Missing capability: {cap}")
    
    buckets: list[tuple[CapabilityGroup, list[str]]] = []
    assigned = set()
    for group in groups:
        caps = [c for c in covered if c in group.capabilities and c not in assigned]
        if caps:
            buckets.append((group, caps))
            assigned.update(caps)
    
    remaining = [c for c in covered if c not in assigned]
    if remaining:
        buckets.append((GENERALIST_GROUP, remaining))
    
    agents = [
        AgentSpec(
            id=f"agent-{index:02d}",
            name=group.role,
            phase=group.resolve_phase(project.phases),
            capabilities=caps,
            context=agent_context(caps, project),
        )
        for index, (group, caps) in enumerate(buckets, start=1)
    ]
    
    recommendations = []
    missing = [cap for cap in required if cap not in covered]
    if missing:
        recommendations.append(
            f"Consider adding these capabilities to the library: {', '.join(missing)}"
        )
    recommendations.extend(suggest_capabilities(project, set(covered)))
    
    return TeamComposition(agents=agents, gaps=gaps, recommendations=recommendations)
