"""Cost statistics rendered as a text block for prompt assembly."""

import logging
from typing import Callable, List, Optional, Sequence

from .storage import CostStore

logger = logging.getLogger(__name__)

NO_COST_DATA = "No cost data available in the system."


def _average(values: Sequence[float]) -> float:
    return sum(values) / len(values)


class CostContextAssembler:
    """
    Builds the cost context injected into the generation prompt.

    Aggregates are computed fresh on every call. Each lookup is guarded on
    its own, so a failing query only drops the lines that depend on it.
    """

    def __init__(self, store: CostStore, currency: str = "THB"):
        self.store = store
        self.currency = currency

    def _money(self, value: Optional[float]) -> str:
        return f"{(value or 0.0):,.2f} {self.currency}"

    def _guarded(self, what: str, fn: Callable[[], List[str]]) -> List[str]:
        try:
            return fn()
        except Exception as e:
            logger.exception("Cost context lookup failed (%s): %s", what, e)
            return []

    def _production_lines(self) -> List[str]:
        costs = self.store.get_production_costs()
        if not costs:
            return []
        avg = _average([c.cost_per_unit for c in costs])
        return [f"Average production cost per unit: {self._money(avg)}"]

    def _project_lines(self, project_id: int) -> List[str]:
        project = self.store.get_project(project_id)
        if project is None:
            return []
        return [
            f"Project: {project.name}",
            f"Estimated total cost: {self._money(project.total_estimated_cost)}",
            f"Actual total cost: {self._money(project.total_actual_cost)}",
        ]

    def _transportation_lines(self, project_id: int) -> List[str]:
        costs = self.store.get_transportation_costs(project_id)
        if not costs:
            return []
        avg = _average([c.total_cost for c in costs])
        return [f"Average transportation cost: {self._money(avg)}"]

    def _installation_lines(self, project_id: int) -> List[str]:
        costs = self.store.get_installation_costs(project_id)
        if not costs:
            return []
        avg = _average([c.total_cost for c in costs])
        return [f"Average installation cost: {self._money(avg)}"]

    def build_context(self, project_id: Optional[int] = None) -> str:
        """
        Render global and (optionally) project-scoped cost statistics.

        Returns ``NO_COST_DATA`` instead of an empty string when nothing
        could be rendered. Never raises.
        """
        lines = self._guarded("production", self._production_lines)

        if project_id is not None:
            lines += self._guarded("project", lambda: self._project_lines(project_id))
            lines += self._guarded("transportation", lambda: self._transportation_lines(project_id))
            lines += self._guarded("installation", lambda: self._installation_lines(project_id))

        return "\n".join(lines) if lines else NO_COST_DATA
