"""
User account planning.

Decides, for every mapped row, whether the account must be created, moved,
updated or left alone, and finds accounts under the default OU that are no
longer present in the import.
"""

import functools
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from directory.base_directory import BaseDirectory, DirectoryUser

from .models.actions import (
    ActionType,
    DeleteUserMetadata,
    ErrorMetadata,
    PendingAction,
    UserMetadata,
)
from .models.canonical_attributes import CanonicalAttributes
from .models.import_analysis import ImportAnalysis
from .models.import_config import ImportConfig
from .path_builder import build_ou_path, canonical_key, paths_equal
from .query_runner import DirectoryQueryRunner
from .reconciliation_planner import ContainerState

logger = logging.getLogger(__name__)

# Never compared against the directory: system-managed or identity attributes
EXCLUDED_FROM_COMPARISON = {
    "password",
    "userpassword",
    "unicodepwd",
    "objectclass",
    "objectguid",
    "objectsid",
    "whencreated",
    "whenchanged",
    "lastlogon",
    "distinguishedname",
    "cn",
    "samaccountname",
}


@dataclass
class MappedRow:
    """An input row together with its normalized attributes."""

    row_index: int
    row: Dict[str, str]
    canonical: CanonicalAttributes


def changed_attributes(
    desired: Dict[str, str], existing: Dict[str, str]
) -> List[str]:
    """
    Names of desired attributes whose directory value differs.

    Names and values are compared case-insensitively after trimming.
    Excluded system attributes are never reported.
    """
    current = {k.lower(): ("" if v is None else str(v)) for k, v in existing.items()}
    changes = []
    for name, value in desired.items():
        if name.lower() in EXCLUDED_FROM_COMPARISON:
            continue
        wanted = (value or "").strip().lower()
        if current.get(name.lower(), "").strip().lower() != wanted:
            changes.append(name)
    return changes


def comparison_attributes(mapped_rows: Iterable[MappedRow]) -> List[str]:
    """Mapped attribute names the directory must return for comparison, first spelling kept."""
    names: Dict[str, str] = {}
    for mapped in mapped_rows:
        for name in mapped.canonical.attributes:
            key = name.lower()
            if key not in EXCLUDED_FROM_COMPARISON and key not in names:
                names[key] = name
    return list(names.values())


class UserPlanner:
    """
    Plan user account actions against the current directory.

    Args:
        directory: Read-only directory query implementation
        query_runner: Runs the blocking lookups concurrently with a cap
    """

    def __init__(self, directory: BaseDirectory, query_runner: DirectoryQueryRunner):
        self.directory = directory
        self.query_runner = query_runner

    def resolve_target_path(
        self,
        canonical: CanonicalAttributes,
        config: ImportConfig,
        state: Optional[ContainerState] = None,
    ) -> str:
        """
        Container a row's account must end up in.

        Falls back to the default OU unless the grouping container is known
        to exist or is queued for creation by this plan.
        """
        if not config.ou_column or not canonical.grouping_value:
            return config.default_ou

        path = build_ou_path(canonical.grouping_value, config.default_ou)
        if state is None:
            return path
        if state.is_available(path):
            return state.preferred(path)

        logger.warning(
            f"OU '{path}' is not known to exist and is not queued for creation, "
            f"using default OU for '{canonical.sam_account_name}'"
        )
        return config.default_ou

    async def plan_users(
        self,
        mapped_rows: List[MappedRow],
        config: ImportConfig,
        analysis: ImportAnalysis,
        state: Optional[ContainerState] = None,
    ) -> Set[str]:
        """
        Emit CREATE_USER / MOVE_USER / UPDATE_USER / ERROR actions for the rows.

        Returns:
            Set[str]: Lower-cased account names present in the import
        """
        imported: Set[str] = set()
        planned_accounts: Set[str] = set()
        planned: List[MappedRow] = []

        for mapped in mapped_rows:
            sam = mapped.canonical.sam_account_name
            if not sam or mapped.canonical.needs_manual_correction:
                # Counted as imported: its directory account must not be planned for deletion
                if sam:
                    imported.add(sam.lower())
                self._add_error(mapped, config, analysis)
                continue

            if sam.lower() in planned_accounts:
                logger.warning(f"Duplicate account '{sam}' on row {mapped.row_index}, ignoring")
                analysis.add_diagnostic(
                    "duplicate_account",
                    f"Account '{sam}' appears more than once, only the first row is planned",
                    row_index=mapped.row_index,
                    subject=sam,
                )
                continue

            imported.add(sam.lower())
            planned_accounts.add(sam.lower())
            planned.append(mapped)

        if not planned:
            return imported

        logger.info(f"Looking up {len(planned)} accounts in the directory")
        find_user = functools.partial(
            self.directory.find_user, attributes=comparison_attributes(planned)
        )
        lookups = await self.query_runner.run_many(
            find_user, [m.canonical.sam_account_name for m in planned]
        )

        for mapped, (sam, existing) in zip(planned, lookups):
            if isinstance(existing, BaseException):
                logger.error(f"Could not look up account '{sam}': {existing}")
                analysis.add_diagnostic(
                    "query_error",
                    f"Lookup failed for account '{sam}': {existing}",
                    row_index=mapped.row_index,
                    subject=sam,
                )
                continue

            target = self.resolve_target_path(mapped.canonical, config, state)
            self._plan_user(mapped, sam, target, existing, analysis)

        return imported

    def _plan_user(
        self,
        mapped: MappedRow,
        sam: str,
        target: str,
        existing: Optional[DirectoryUser],
        analysis: ImportAnalysis,
    ) -> None:
        attributes = dict(mapped.canonical.attributes)

        if existing is None:
            analysis.add_action(
                PendingAction(
                    action_type=ActionType.CREATE_USER,
                    object_name=sam,
                    path=target,
                    message="Create new user",
                    metadata=UserMetadata.from_attributes(attributes),
                    row_index=mapped.row_index,
                )
            )
            return

        changes = changed_attributes(attributes, existing.attributes)
        current = existing.container

        if current and not paths_equal(current, target):
            logger.info(f"Move required for '{sam}': {current} -> {target}")
            analysis.add_action(
                PendingAction(
                    action_type=ActionType.MOVE_USER,
                    object_name=sam,
                    path=target,
                    message=f"Move user from '{current}' to '{target}'",
                    metadata=UserMetadata.from_attributes(
                        attributes, source_container=current, changed_attributes=changes
                    ),
                    row_index=mapped.row_index,
                )
            )
            return

        if not existing.attributes:
            logger.warning(f"No attributes returned for '{sam}', planning an update")
            message = "Update planned (existing attributes could not be compared)"
        elif changes:
            message = f"Update required: {', '.join(changes)}"
        else:
            logger.debug(f"No change detected for '{sam}'")
            return

        analysis.add_action(
            PendingAction(
                action_type=ActionType.UPDATE_USER,
                object_name=sam,
                path=target,
                message=message,
                metadata=UserMetadata.from_attributes(attributes, changed_attributes=changes),
                row_index=mapped.row_index,
            )
        )

    @staticmethod
    def _add_error(mapped: MappedRow, config: ImportConfig, analysis: ImportAnalysis) -> None:
        canonical = mapped.canonical
        missing = canonical.missing_required or ["sAMAccountName"]
        name = canonical.sam_account_name or canonical.get("displayName") or f"row {mapped.row_index}"
        raw_row = tuple(
            (str(k), "" if v is None else str(v)) for k, v in (mapped.row or {}).items()
        )
        logger.warning(f"Row {mapped.row_index} needs manual correction: missing {', '.join(missing)}")
        analysis.add_action(
            PendingAction(
                action_type=ActionType.ERROR,
                object_name=name,
                path=config.default_ou,
                message=f"Needs manual correction: missing {', '.join(missing)}",
                metadata=ErrorMetadata(
                    reason=f"missing required attributes: {', '.join(missing)}",
                    raw_row=raw_row,
                ),
                row_index=mapped.row_index,
            )
        )

    async def plan_orphans(
        self,
        imported_accounts: Iterable[str],
        config: ImportConfig,
        analysis: ImportAnalysis,
    ) -> List[str]:
        """
        Emit DELETE_USER for accounts under the default OU absent from the import.

        Returns:
            List[str]: Distinct containers of every scanned user, for cleanup
        """
        if not config.default_ou:
            logger.warning("No default OU configured, skipping orphan detection")
            return []

        try:
            users = await self.query_runner.run(self.directory.users_under, config.default_ou)
        except Exception as e:
            logger.error(f"Could not list users under '{config.default_ou}': {e}")
            analysis.add_diagnostic(
                "query_error",
                f"User scan failed under '{config.default_ou}': {e}",
                subject=config.default_ou,
            )
            return []

        imported = {a.lower() for a in imported_accounts}
        containers: Dict[str, str] = {}
        orphans = 0

        for user in users:
            container = user.container
            if container and canonical_key(container) not in containers:
                containers[canonical_key(container)] = container

            if not user.sam_account_name or user.sam_account_name.lower() in imported:
                continue

            orphans += 1
            analysis.add_action(
                PendingAction(
                    action_type=ActionType.DELETE_USER,
                    object_name=user.sam_account_name,
                    path=user.distinguished_name,
                    message=f"Delete user '{user.sam_account_name}': not present in the import",
                    metadata=DeleteUserMetadata(
                        distinguished_name=user.distinguished_name,
                        display_name=user.display_name or "",
                    ),
                )
            )

        logger.info(
            f"Scanned {len(users)} users under '{config.default_ou}': "
            f"{orphans} orphaned, {len(containers)} containers"
        )
        return list(containers.values())
