"""
Data models for CircleCI v1.1 build responses.

Only the fields the debugger reads are modeled; everything else in the API
response is ignored.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

# A step taking more than this share of the total build time is a bottleneck
BOTTLENECK_SHARE = 0.5


@dataclass
class Action:
    """
    One action (container run) of a build step.

    Attributes:
        name: Action name
        status: Status string ("success", "failed", ...)
        failed: API failure flag, when present
        output_url: URL of the action's log output
        action_type: Action type ("test", "deploy", ...)
        run_time_millis: Run time, when reported
    """

    name: str
    status: str = ""
    failed: bool | None = None
    output_url: str | None = None
    action_type: str = ""
    run_time_millis: int | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Action":
        return cls(
            name=data.get("name", ""),
            status=data.get("status") or "",
            failed=data.get("failed"),
            output_url=data.get("output_url"),
            action_type=data.get("type") or "",
            run_time_millis=data.get("run_time_millis"),
        )

    @property
    def is_failed(self) -> bool:
        return bool(self.failed) or self.status == "failed"

    @property
    def duration(self) -> timedelta:
        return timedelta(milliseconds=self.run_time_millis or 0)


@dataclass
class Step:
    """A named build step and its actions."""

    name: str
    actions: list[Action] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Step":
        return cls(
            name=data.get("name", ""),
            actions=[Action.from_json(a) for a in data.get("actions") or []],
        )

    @property
    def has_failures(self) -> bool:
        return any(action.failed for action in self.actions)

    @property
    def run_time_millis(self) -> int:
        return sum(action.run_time_millis or 0 for action in self.actions)


@dataclass
class StepTiming:
    """
    Run time of one step relative to the whole build.

    Attributes:
        name: Step name
        millis: Total run time of the step's actions
        share: Fraction of the build's total step time
    """

    name: str
    millis: int
    share: float

    @property
    def percentage(self) -> int:
        return int(self.share * 100)


@dataclass
class BuildInfo:
    """
    A CircleCI build.

    Example:
        >>> build = BuildInfo.from_json(response.json())
        >>> for action in build.failed_actions:
        ...     print(action.name, action.output_url)
    """

    build_num: int
    status: str
    branch: str | None = None
    subject: str | None = None
    steps: list[Step] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "BuildInfo":
        """
        Parse a build from the v1.1 API response.

        Raises:
            ValueError: If the response has no build number
        """
        if data.get("build_num") is None:
            raise ValueError("CircleCI response has no build_num")
        return cls(
            build_num=int(data["build_num"]),
            status=data.get("status") or "",
            branch=data.get("branch"),
            subject=data.get("subject"),
            steps=[Step.from_json(s) for s in data.get("steps") or []],
        )

    @property
    def is_failed(self) -> bool:
        return self.status == "failed"

    @property
    def is_success(self) -> bool:
        return self.status == "success"

    @property
    def failed_steps(self) -> list[Step]:
        return [step for step in self.steps if step.has_failures]

    @property
    def failed_actions(self) -> list[Action]:
        return [action for step in self.steps for action in step.actions if action.failed]

    @property
    def total_time_millis(self) -> int:
        return sum(step.run_time_millis for step in self.steps)

    def step_timings(self, limit: int | None = 5) -> list[StepTiming]:
        """
        Steps with a reported run time, slowest first.

        Args:
            limit: Maximum number of steps returned (None for all)
        """
        total = self.total_time_millis
        if total == 0:
            return []

        timings = [
            StepTiming(name=step.name, millis=step.run_time_millis, share=step.run_time_millis / total)
            for step in self.steps
            if step.run_time_millis > 0
        ]
        timings.sort(key=lambda t: t.millis, reverse=True)
        return timings[:limit] if limit is not None else timings

    def bottleneck(self) -> StepTiming | None:
        """The slowest step, if it takes more than half of the build time."""
        timings = self.step_timings(limit=1)
        if timings and timings[0].share > BOTTLENECK_SHARE:
            return timings[0]
        return None
