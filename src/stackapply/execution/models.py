"""Apply results."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union
from ..planning.models import ActionType, PlannedAction


@dataclass
class Success:
    """Action completed; provider_id is empty for deletes."""
    provider_id: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return True


@dataclass
class Failure:
    """Action failed or was never started."""
    error: Exception

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return str(self.error)


Result = Union[Success, Failure]


@dataclass
class ActionOutcome:
    action: PlannedAction
    result: Result

    @property
    def address(self) -> str:
        return self.action.address


@dataclass
class ApplyReport:
    """Ordered (action, result) pairs in plan order."""
    outcomes: List[ActionOutcome] = field(default_factory=list)
    canceled: bool = False

    @property
    def ok(self) -> bool:
        return all(outcome.result.ok for outcome in self.outcomes)

    @property
    def failures(self) -> List[ActionOutcome]:
        return [o for o in self.outcomes if not o.result.ok]

    @property
    def failed_addresses(self) -> List[str]:
        return [o.address for o in self.failures]

    def result_for(self, address: str) -> Result:
        for outcome in self.outcomes:
            if outcome.address == address:
                return outcome.result
        raise KeyError(address)

    def summary(self) -> Dict[str, int]:
        counts = {a.value: 0 for a in ActionType}
        counts["failed"] = 0
        for outcome in self.outcomes:
            if outcome.result.ok:
                counts[outcome.action.type.value] += 1
            else:
                counts["failed"] += 1
        return counts
