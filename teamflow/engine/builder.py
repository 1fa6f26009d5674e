"""Workflow builder - turns a team and a phase list into a dependency graph."""

from typing import Optional
import logging

from ..models import AgentSpec, PatternType, Step, WorkflowGraph

logger = logging.getLogger(__name__)

REVIEW_AGENT_ID = "review-agent"
REFINEMENT_AGENT_ID = "refinement-agent"


PHASE_SEPARATOR = "/"


class WorkflowValidationError(ValueError):
    """A workflow graph has a cycle or references an unknown step."""


def qualified_name(phase: str, agent_id: str) -> str:
    """Join a phase and an agent id into a name unique per (phase, agent)."""
    return f"{phase}{PHASE_SEPARATOR}{agent_id}"


def check_names(agents: list[AgentSpec], phases: list[str]) -> None:
    """Reject phase names and agent ids that contain the phase separator."""
    bad = [p for p in phases if PHASE_SEPARATOR in p]
    bad.extend(a.id for a in agents if PHASE_SEPARATOR in a.id)
    if bad:
        raise WorkflowValidationError(
            f"Names must not contain '{PHASE_SEPARATOR}': {', '.join(bad)}"
        )


def group_agents_by_phase(
    agents: list[AgentSpec],
    phases: list[str],
) -> dict[str, list[AgentSpec]]:
    """
    Bucket agents by phase, preserving roster order.
    
    Agents with phase ``"all"`` land in every bucket. Agents whose phase is
    not one of ``phases`` are dropped.
    """
    groups: dict[str, list[AgentSpec]] = {phase: [] for phase in phases}
    
    for agent in agents:
        if agent.works_all_phases:
            for phase in phases:
                groups[phase].append(agent)
        elif agent.phase in groups:
            groups[agent.phase].append(agent)
        else:
            logger.debug(
                f"Agent {agent.id} has undeclared phase '{agent.phase}', skipping"
            )
    
    return groups


def topological_order(graph: WorkflowGraph) -> list[str]:
    """
    Order step ids so that every step comes after its dependencies.
    
    Uses Kahn's algorithm with insertion order as the tie-break.
    
    Raises:
        WorkflowValidationError: If there's a circular dependency
    """
    step_ids = graph.step_ids
    in_degree = {s: 0 for s in step_ids}
    dependents: dict[str, list[str]] = {s: [] for s in step_ids}
    
    for step_id in step_ids:
        for dep in graph.get_dependencies(step_id):
            if dep in dependents:
                dependents[dep].append(step_id)
                in_degree[step_id] += 1
    
    queue = [s for s in step_ids if in_degree[s] == 0]
    order = []
    
    while queue:
        node = queue.pop(0)
        order.append(node)
        
        for dependent in dependents[node]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)
    
    if len(order) != len(step_ids):
        remaining = [s for s in step_ids if s not in order]
        raise WorkflowValidationError(
            f"Circular dependency detected involving: {remaining}"
        )
    
    return order


def find_dangling_references(graph: WorkflowGraph) -> list[str]:
    """List problems where the dependency map names steps that don't exist."""
    known = set(graph.step_ids)
    problems = []
    
    for step_id, deps in graph.dependencies.items():
        if step_id not in known:
            problems.append(f"Dependency entry for unknown step '{step_id}'")
        for dep in deps:
            if dep not in known:
                problems.append(f"Step '{step_id}' depends on unknown step '{dep}'")
    
    return problems


def validate_graph(graph: WorkflowGraph) -> None:
    """
    Check that a graph is well formed.
    
    Raises:
        WorkflowValidationError: On duplicate ids, dangling references or
            a dependency cycle
    """
    seen = set()
    for step_id in graph.step_ids:
        if step_id in seen:
            raise WorkflowValidationError(f"Duplicate step id '{step_id}'")
        seen.add(step_id)
    
    problems = find_dangling_references(graph)
    if problems:
        raise WorkflowValidationError("; ".join(problems))
    
    topological_order(graph)


class WorkflowBuilder:
    """
    Builds a WorkflowGraph for a team according to a scheduling pattern.
    
    Patterns:
    - sequential: one strict chain over all phases and agents
    - parallel: every step of a phase waits for the whole previous phase
    - iterative: per phase, work steps then a review step then a refine step
    """
    
    def build(
        self,
        agents: list[AgentSpec],
        phases: list[str],
        pattern_type: PatternType | str = PatternType.SEQUENTIAL,
    ) -> WorkflowGraph:
        """
        Build and validate a workflow graph.
        
        Args:
            agents: The team in roster order
            phases: Phase names in execution order
            pattern_type: Scheduling pattern
        
        Returns:
            The validated graph
        
        Raises:
            ValueError: If the pattern is unknown
            WorkflowValidationError: If the resulting graph is invalid
        """
        pattern_type = PatternType(pattern_type)
        check_names(agents, phases)
        groups = group_agents_by_phase(agents, phases)
        
        if pattern_type == PatternType.SEQUENTIAL:
            graph = self._build_sequential(phases, groups)
        elif pattern_type == PatternType.PARALLEL:
            graph = self._build_parallel(phases, groups)
        else:
            graph = self._build_iterative(phases, groups)
        
        validate_graph(graph)
        logger.info(
            f"Built {pattern_type.value} workflow: "
            f"{len(graph)} steps, {graph.edge_count} dependencies"
        )
        return graph
    
    def _build_sequential(
        self,
        phases: list[str],
        groups: dict[str, list[AgentSpec]],
    ) -> WorkflowGraph:
        steps: list[Step] = []
        dependencies: dict[str, list[str]] = {}
        previous: Optional[Step] = None
        
        for phase in phases:
            for agent in groups[phase]:
                step = Step(
                    id=f"step-{qualified_name(phase, agent.id)}",
                    agent_id=agent.id,
                    action=f"{agent.name} - {phase} phase",
                    inputs=previous.outputs if previous else (),
                    outputs=(f"{qualified_name(phase, agent.id)}-output",),
                )
                if previous:
                    dependencies[step.id] = [previous.id]
                steps.append(step)
                previous = step
        
        return WorkflowGraph(
            pattern_type=PatternType.SEQUENTIAL,
            steps=steps,
            dependencies=dependencies,
        )
    
    def _build_parallel(
        self,
        phases: list[str],
        groups: dict[str, list[AgentSpec]],
    ) -> WorkflowGraph:
        steps: list[Step] = []
        dependencies: dict[str, list[str]] = {}
        previous_phase: list[Step] = []
        
        for phase in phases:
            upstream_ids = [s.id for s in previous_phase]
            upstream_outputs = tuple(o for s in previous_phase for o in s.outputs)
            phase_steps = []
            
            for agent in groups[phase]:
                step = Step(
                    id=f"step-{qualified_name(phase, agent.id)}",
                    agent_id=agent.id,
                    action=f"{agent.name} - {phase} phase",
                    inputs=upstream_outputs,
                    outputs=(f"{qualified_name(phase, agent.id)}-output",),
                )
                if upstream_ids:
                    dependencies[step.id] = list(upstream_ids)
                phase_steps.append(step)
            
            steps.extend(phase_steps)
            previous_phase = phase_steps
        
        return WorkflowGraph(
            pattern_type=PatternType.PARALLEL,
            steps=steps,
            dependencies=dependencies,
        )
    
    def _build_iterative(
        self,
        phases: list[str],
        groups: dict[str, list[AgentSpec]],
    ) -> WorkflowGraph:
        steps: list[Step] = []
        dependencies: dict[str, list[str]] = {}
        
        for phase in phases:
            work_steps = [
                Step(
                    id=f"work-{qualified_name(phase, agent.id)}",
                    agent_id=agent.id,
                    action=f"{agent.name} - initial {phase} work",
                    outputs=(f"{qualified_name(phase, agent.id)}-draft",),
                )
                for agent in groups[phase]
            ]
            steps.extend(work_steps)
            
            review = Step(
                id=f"review-{phase}",
                agent_id=REVIEW_AGENT_ID,
                action=f"Review {phase} outputs",
                inputs=tuple(o for s in work_steps for o in s.outputs),
                outputs=(f"{phase}-review-feedback",),
            )
            steps.append(review)
            dependencies[review.id] = [s.id for s in work_steps]
            
            refine = Step(
                id=f"refine-{phase}",
                agent_id=REFINEMENT_AGENT_ID,
                action=f"Refine {phase} based on feedback",
                inputs=review.outputs,
                outputs=(f"{phase}-final",),
            )
            steps.append(refine)
            dependencies[refine.id] = [review.id]
        
        return WorkflowGraph(
            pattern_type=PatternType.ITERATIVE,
            steps=steps,
            dependencies=dependencies,
        )
