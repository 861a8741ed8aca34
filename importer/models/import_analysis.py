"""
Import analysis result: the ordered action plan plus row-level diagnostics.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd

from .actions import ActionType, PendingAction


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal finding recorded while planning."""

    kind: str
    message: str
    row_index: Optional[int] = None
    subject: Optional[str] = None


@dataclass
class ImportSummary:
    """Aggregated counters for one analysis run."""

    total_rows: int = 0
    create_ou_count: int = 0
    delete_ou_count: int = 0
    create_group_count: int = 0
    delete_group_count: int = 0
    create_user_count: int = 0
    update_user_count: int = 0
    move_user_count: int = 0
    delete_user_count: int = 0
    error_count: int = 0
    diagnostic_count: int = 0

    @property
    def total_actions(self) -> int:
        return (
            self.create_ou_count
            + self.delete_ou_count
            + self.create_group_count
            + self.delete_group_count
            + self.create_user_count
            + self.update_user_count
            + self.move_user_count
            + self.delete_user_count
            + self.error_count
        )


_SUMMARY_FIELDS = {
    ActionType.CREATE_OU: "create_ou_count",
    ActionType.DELETE_OU: "delete_ou_count",
    ActionType.CREATE_GROUP: "create_group_count",
    ActionType.DELETE_GROUP: "delete_group_count",
    ActionType.CREATE_USER: "create_user_count",
    ActionType.UPDATE_USER: "update_user_count",
    ActionType.MOVE_USER: "move_user_count",
    ActionType.DELETE_USER: "delete_user_count",
    ActionType.ERROR: "error_count",
}


@dataclass
class ImportAnalysis:
    """
    Ordered plan produced by one reconciliation run.

    Actions are only ever appended; the list order is the order in which the
    applier must perform them.
    """

    actions: List[PendingAction] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    total_rows: int = 0

    def add_action(self, action: PendingAction) -> None:
        self.actions.append(action)

    def add_diagnostic(
        self,
        kind: str,
        message: str,
        row_index: Optional[int] = None,
        subject: Optional[str] = None,
    ) -> None:
        self.diagnostics.append(
            Diagnostic(kind=kind, message=message, row_index=row_index, subject=subject)
        )

    def has_action(self, action_type: ActionType, path: str) -> bool:
        """Check whether an action of this kind already targets the path (case-insensitive)."""
        wanted = path.strip().lower()
        return any(
            a.action_type == action_type and a.path.strip().lower() == wanted
            for a in self.actions
        )

    def actions_of_type(self, action_type: ActionType) -> List[PendingAction]:
        return [a for a in self.actions if a.action_type == action_type]

    @property
    def summary(self) -> ImportSummary:
        summary = ImportSummary(
            total_rows=self.total_rows, diagnostic_count=len(self.diagnostics)
        )
        for action in self.actions:
            name = _SUMMARY_FIELDS[action.action_type]
            setattr(summary, name, getattr(summary, name) + 1)
        return summary

    def to_dict(self) -> Dict[str, Any]:
        summary = asdict(self.summary)
        summary["total_actions"] = self.summary.total_actions
        return {
            "actions": [a.to_dict() for a in self.actions],
            "diagnostics": [asdict(d) for d in self.diagnostics],
            "summary": summary,
        }

    def to_dataframe(self) -> pd.DataFrame:
        """One row per action, metadata flattened into ``meta_*`` columns."""
        records = []
        for order, action in enumerate(self.actions):
            data = action.to_dict()
            record = {
                "order": order,
                "action_type": data["action_type"],
                "object_name": data["object_name"],
                "path": data["path"],
                "message": data["message"],
                "row_index": data["row_index"],
            }
            for key, value in data["metadata"].items():
                record[f"meta_{key}"] = value
            records.append(record)

        columns = ["order", "action_type", "object_name", "path", "message", "row_index"]
        if not records:
            return pd.DataFrame(columns=columns)
        return pd.DataFrame.from_records(records)
