"""Milestone table - reward rate and completion per participation tier."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from fractions import Fraction
from pathlib import Path
from typing import Any, Iterable

from openxai_indexer.errors import UnknownMilestone, ValidationError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Milestone:
    rate: Fraction  # reward tokens per funded stable-coin unit
    completed: bool


class MilestoneTable:
    """Immutable, tier-indexed list of milestones."""

    def __init__(self, milestones: Iterable[Milestone]) -> None:
        self._milestones = tuple(milestones)

    def __len__(self) -> int:
        return len(self._milestones)

    def lookup(self, tier: int) -> Milestone:
        if not 0 <= tier < len(self._milestones):
            raise UnknownMilestone(f"Unknown milestone tier {tier}")
        return self._milestones[tier]

    @classmethod
    def from_projects(cls, projects: list[dict[str, Any]]) -> MilestoneTable:
        """Build the table from project entries.

        Each entry needs ``fundingGoal``, ``backersRewards``, ``flashBonus``
        and ``status``; a tier is complete when its status is "Completed".
        """
        milestones = []
        for tier, project in enumerate(projects):
            try:
                goal = int(project["fundingGoal"])
                rewards = int(project["backersRewards"]) + int(project.get("flashBonus", 0))
            except (KeyError, TypeError, ValueError) as exc:
                raise ValidationError(f"Invalid project entry for tier {tier}: {exc}") from exc
            if goal <= 0:
                raise ValidationError(f"Tier {tier} has non-positive funding goal {goal}")
            milestones.append(
                Milestone(
                    rate=Fraction(rewards, goal),
                    completed=project.get("status") == "Completed",
                )
            )
        return cls(milestones)

    @classmethod
    def load(cls, path: str | Path) -> MilestoneTable:
        p = Path(path).expanduser()
        with open(p) as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("projects", [])
        table = cls.from_projects(data)
        log.info("Loaded %d milestones from %s", len(table), p)
        return table
