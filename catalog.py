"""
Read-only snapshot of the project > stage > task hierarchy.
The catalog is owned elsewhere; the ledger only checks ids and parentage against it.
"""
from dataclasses import dataclass, field
from typing import Iterable

from errors import InvalidHierarchy

# Report label for allocations whose project is missing from the catalog.
UNNAMED_PROJECT = "Unnamed project"


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    status: str | None = None


@dataclass(frozen=True)
class Stage:
    id: str
    project_id: str
    name: str
    status: str | None = None


@dataclass(frozen=True)
class Task:
    id: str
    stage_id: str
    name: str
    status: str | None = None


@dataclass(frozen=True)
class Catalog:
    """Projects, stages and tasks indexed by id."""

    projects: dict[str, Project] = field(default_factory=dict)
    stages: dict[str, Stage] = field(default_factory=dict)
    tasks: dict[str, Task] = field(default_factory=dict)

    @classmethod
    def from_items(
        cls,
        projects: Iterable[Project] = (),
        stages: Iterable[Stage] = (),
        tasks: Iterable[Task] = (),
    ) -> "Catalog":
        return cls(
            projects={p.id: p for p in projects},
            stages={s.id: s for s in stages},
            tasks={t.id: t for t in tasks},
        )

    def stages_for(self, project_id: str) -> list[Stage]:
        """Stages of a project, by name (for dropdowns)."""
        return sorted(
            (s for s in self.stages.values() if s.project_id == project_id),
            key=lambda s: s.name,
        )

    def tasks_for(self, stage_id: str) -> list[Task]:
        """Tasks of a stage, by name."""
        return sorted(
            (t for t in self.tasks.values() if t.stage_id == stage_id),
            key=lambda t: t.name,
        )

    def project_name(self, project_id: str) -> str:
        project = self.projects.get(project_id)
        return project.name if project is not None and project.name else UNNAMED_PROJECT

    def full_path(self, project_id: str, stage_id: str | None = None, task_id: str | None = None) -> str:
        """'Project > Stage > Task' using names where known, ids otherwise."""
        parts = [self.projects[project_id].name if project_id in self.projects else project_id]
        if stage_id:
            parts.append(self.stages[stage_id].name if stage_id in self.stages else stage_id)
        if task_id:
            parts.append(self.tasks[task_id].name if task_id in self.tasks else task_id)
        return " > ".join(parts)

    def check(self, project_id: str | None, stage_id: str | None, task_id: str | None) -> None:
        """Raise InvalidHierarchy unless stage belongs to project and task belongs to stage."""
        check_structure(project_id, stage_id, task_id)
        if project_id and project_id not in self.projects:
            raise InvalidHierarchy(f"Unknown project {project_id!r}.", field="project_id")
        if stage_id:
            stage = self.stages.get(stage_id)
            if stage is None:
                raise InvalidHierarchy(f"Unknown stage {stage_id!r}.", field="stage_id")
            if stage.project_id != project_id:
                raise InvalidHierarchy(
                    f"Stage {stage_id!r} does not belong to project {project_id!r}.",
                    field="stage_id",
                )
        if task_id:
            task = self.tasks.get(task_id)
            if task is None:
                raise InvalidHierarchy(f"Unknown task {task_id!r}.", field="task_id")
            if task.stage_id != stage_id:
                raise InvalidHierarchy(
                    f"Task {task_id!r} does not belong to stage {stage_id!r}.",
                    field="task_id",
                )


def check_structure(project_id: str | None, stage_id: str | None, task_id: str | None) -> None:
    """Structural rules that hold without a catalog: a task needs a stage, a stage needs a project."""
    if stage_id and not project_id:
        raise InvalidHierarchy("A stage requires a project.", field="stage_id")
    if task_id and not stage_id:
        raise InvalidHierarchy("A task requires a stage.", field="task_id")
