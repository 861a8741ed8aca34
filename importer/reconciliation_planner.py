"""
Organizational unit and group reconciliation.

Pass A (plan_structure) plans the OUs and paired groups an import needs.
Pass B (plan_cleanup) plans the deletion of empty OUs and groups among a set
of previously scanned containers. Both passes only read the directory and
append actions to the ImportAnalysis.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from directory.base_directory import BaseDirectory

from .models.actions import (
    ActionType,
    CreateGroupMetadata,
    CreateOuMetadata,
    DeleteGroupMetadata,
    DeleteOuMetadata,
    DeletionReason,
    PendingAction,
)
from .models.import_analysis import ImportAnalysis
from .models.import_config import ImportConfig
from .path_builder import (
    build_ou_path,
    canonical_key,
    extract_ou_name,
    extract_parent_path,
    ou_depth,
    paths_equal,
)
from .query_runner import DirectoryQueryRunner
from .template_engine import find_column

logger = logging.getLogger(__name__)


@dataclass
class ContainerState:
    """What Pass A learned about target OUs, keyed by canonical path."""

    existing: Set[str] = field(default_factory=set)
    queued: Set[str] = field(default_factory=set)
    missing: Set[str] = field(default_factory=set)
    unknown: Set[str] = field(default_factory=set)
    spellings: Dict[str, str] = field(default_factory=dict)

    def is_available(self, path: str) -> bool:
        key = canonical_key(path)
        return key in self.existing or key in self.queued

    def preferred(self, path: str) -> str:
        """Spelling of the path as first met in the rows."""
        return self.spellings.get(canonical_key(path), path)


def extract_unique_grouping_values(
    rows: Iterable[Dict[str, str]], ou_column: str
) -> List[str]:
    """Distinct trimmed grouping values, deduplicated case-insensitively, first spelling kept."""
    values: List[str] = []
    seen: Set[str] = set()
    if not ou_column:
        return values

    for row in rows:
        if not row:
            continue
        key = find_column(row, ou_column)
        if key is None or row[key] is None:
            continue
        value = str(row[key]).strip()
        if not value or value.lower() in seen:
            continue
        seen.add(value.lower())
        values.append(value)
    return values


def group_names_for(ou_name: str, prefix: Optional[str] = None) -> Dict[str, str]:
    """Names of the security and distribution groups paired with an OU."""
    prefix = prefix or ""
    return {
        "security": f"{prefix}Sec_{ou_name}",
        "distribution": f"{prefix}Dist_{ou_name}",
    }


class ReconciliationPlanner:
    """
    Plan OU and group creation and cleanup against the current directory.

    Args:
        directory: Read-only directory query implementation
        query_runner: Runs the blocking queries concurrently with a cap
    """

    def __init__(self, directory: BaseDirectory, query_runner: DirectoryQueryRunner):
        self.directory = directory
        self.query_runner = query_runner

    # Pass A: structural creation

    async def plan_structure(
        self,
        rows: List[Dict[str, str]],
        config: ImportConfig,
        analysis: ImportAnalysis,
    ) -> ContainerState:
        """
        Plan the OUs (and their paired groups) needed by the rows.

        Existence of every distinct target path is queried concurrently.
        Creation actions are only emitted when config.create_missing_ous is on.

        Returns:
            ContainerState: Existing, queued, missing and unknown target paths
        """
        state = ContainerState()
        logger.info(f"Analyzing organizational units from column '{config.ou_column}'")

        if not await self._ensure_default_ou(config, analysis, state):
            logger.warning(
                f"Default OU '{config.default_ou}' is not available, no child OU will be planned"
            )
            return state

        grouping_values = extract_unique_grouping_values(rows, config.ou_column)
        if not grouping_values:
            logger.info("No grouping values found, nothing to create")
            return state

        targets: Dict[str, str] = {}
        for value in grouping_values:
            path = build_ou_path(value, config.default_ou)
            if path and canonical_key(path) not in targets:
                targets[canonical_key(path)] = path
        state.spellings.update(targets)

        logger.info(f"Checking existence of {len(targets)} target OUs")
        results = await self.query_runner.run_many(
            self.directory.container_exists, list(targets.values())
        )

        missing_paths = []
        for path, exists in results:
            key = canonical_key(path)
            if isinstance(exists, BaseException):
                logger.error(f"Could not check whether OU '{path}' exists: {exists}")
                analysis.add_diagnostic(
                    "query_error", f"Existence check failed for OU '{path}': {exists}", subject=path
                )
                state.unknown.add(key)
            elif exists:
                state.existing.add(key)
            else:
                missing_paths.append(path)

        for path in missing_paths:
            key = canonical_key(path)
            if not config.create_missing_ous:
                state.missing.add(key)
                continue
            if key in state.queued or analysis.has_action(ActionType.CREATE_OU, path):
                state.queued.add(key)
                continue
            self._add_ou_creation(path, config, analysis)
            state.queued.add(key)

        logger.info(
            f"OU analysis complete: {len(state.existing)} existing, {len(state.queued)} to create, "
            f"{len(state.missing)} missing, {len(state.unknown)} unknown"
        )
        return state

    async def _ensure_default_ou(
        self, config: ImportConfig, analysis: ImportAnalysis, state: ContainerState
    ) -> bool:
        if not config.default_ou:
            return True

        try:
            exists = await self.query_runner.run(
                self.directory.container_exists, config.default_ou
            )
        except Exception as e:
            logger.error(f"Could not check default OU '{config.default_ou}': {e}")
            analysis.add_diagnostic(
                "query_error",
                f"Existence check failed for default OU '{config.default_ou}': {e}",
                subject=config.default_ou,
            )
            state.unknown.add(canonical_key(config.default_ou))
            return False

        key = canonical_key(config.default_ou)
        if exists:
            state.existing.add(key)
            return True

        if not config.create_missing_ous:
            state.missing.add(key)
            return False

        if not analysis.has_action(ActionType.CREATE_OU, config.default_ou):
            ou_name = extract_ou_name(config.default_ou)
            analysis.add_action(
                PendingAction(
                    action_type=ActionType.CREATE_OU,
                    object_name=ou_name,
                    path=config.default_ou,
                    message=f"Create parent organizational unit '{ou_name}'",
                    metadata=CreateOuMetadata(
                        ou_name=ou_name,
                        ou_path=config.default_ou,
                        create_linked_resource=config.create_linked_resources,
                    ),
                )
            )
        state.queued.add(key)
        return True

    def _add_ou_creation(
        self, path: str, config: ImportConfig, analysis: ImportAnalysis
    ) -> None:
        ou_name = extract_ou_name(path)
        analysis.add_action(
            PendingAction(
                action_type=ActionType.CREATE_OU,
                object_name=ou_name,
                path=path,
                message=f"Create organizational unit '{ou_name}' under '{extract_parent_path(path)}'",
                metadata=CreateOuMetadata(
                    ou_name=ou_name,
                    ou_path=path,
                    create_linked_resource=config.create_linked_resources,
                ),
            )
        )
        self.add_group_creation_actions(ou_name, path, config, analysis)

    def add_group_creation_actions(
        self, ou_name: str, ou_path: str, config: ImportConfig, analysis: ImportAnalysis
    ) -> None:
        """Queue the security and distribution groups that accompany a new OU."""
        names = group_names_for(ou_name, config.group_prefix)
        analysis.add_action(
            PendingAction(
                action_type=ActionType.CREATE_GROUP,
                object_name=names["security"],
                path=ou_path,
                message=f"Create security group '{names['security']}' in OU '{ou_name}'",
                metadata=CreateGroupMetadata(is_security=True),
            )
        )
        analysis.add_action(
            PendingAction(
                action_type=ActionType.CREATE_GROUP,
                object_name=names["distribution"],
                path=ou_path,
                message=f"Create distribution group '{names['distribution']}' in OU '{ou_name}'",
                metadata=CreateGroupMetadata(is_security=False),
            )
        )

    # Pass B: empty-object cleanup

    def is_protected(self, path: str, config: ImportConfig) -> bool:
        """
        Check whether an OU must never be deleted.

        Protected: the default OU itself, any OU directly under the domain
        root, and OUs at depth 1 or 2 whose name is in protected_ou_names.
        """
        if config.default_ou and paths_equal(path, config.default_ou):
            return True

        depth = ou_depth(path)
        if depth <= 1:
            return True

        protected_names = {n.strip().lower() for n in (config.protected_ou_names or [])}
        return depth <= 2 and extract_ou_name(path).lower() in protected_names

    async def plan_cleanup(
        self,
        scanned_containers: Iterable[str],
        config: ImportConfig,
        analysis: ImportAnalysis,
    ) -> None:
        """
        Plan deletion of empty OUs and empty groups among scanned containers.

        Containers are visited deepest first so children are deleted before
        their parents. Query failures skip the affected item only.
        """
        candidates: Dict[str, str] = {}
        for path in scanned_containers:
            if path and path.strip() and canonical_key(path) not in candidates:
                candidates[canonical_key(path)] = path.strip()

        if not candidates:
            logger.info("No scanned OU, skipping empty OU cleanup")
            return

        ordered = sorted(candidates.values(), key=ou_depth, reverse=True)
        logger.info(f"Checking {len(ordered)} scanned OUs for empty objects")

        for path in ordered:
            if self.is_protected(path, config):
                logger.debug(f"OU '{path}' is protected, skipping")
                continue
            await self._plan_container_cleanup(path, analysis)

        logger.info(
            f"Empty object cleanup complete: "
            f"{len(analysis.actions_of_type(ActionType.DELETE_OU))} OUs and "
            f"{len(analysis.actions_of_type(ActionType.DELETE_GROUP))} groups marked for deletion"
        )

    async def _plan_container_cleanup(self, path: str, analysis: ImportAnalysis) -> None:
        try:
            groups = list(await self.query_runner.run(self.directory.groups_in, path))
        except Exception as e:
            self._record_query_failure(analysis, path, "list groups in", e)
            return

        await self._plan_group_cleanup(path, groups, analysis)

        try:
            empty_of_users = await self.query_runner.run(
                self.directory.is_container_empty_of_users, path
            )
        except Exception as e:
            self._record_query_failure(analysis, path, "check users in", e)
            return

        if not empty_of_users:
            logger.debug(f"OU '{path}' still holds users, keeping it")
            return

        ou_name = extract_ou_name(path)
        if groups:
            analysis.add_action(
                PendingAction(
                    action_type=ActionType.DELETE_OU,
                    object_name=ou_name,
                    path=path,
                    message=f"Delete organizational unit '{ou_name}': it only contains {len(groups)} group(s)",
                    metadata=DeleteOuMetadata(
                        reason=DeletionReason.CONTAINS_ONLY_GROUPS, group_count=len(groups)
                    ),
                )
            )
            return

        try:
            completely_empty = await self.query_runner.run(
                self.directory.is_container_completely_empty, path
            )
        except Exception as e:
            self._record_query_failure(analysis, path, "check contents of", e)
            return

        if completely_empty:
            analysis.add_action(
                PendingAction(
                    action_type=ActionType.DELETE_OU,
                    object_name=ou_name,
                    path=path,
                    message=f"Delete empty organizational unit '{ou_name}'",
                    metadata=DeleteOuMetadata(reason=DeletionReason.COMPLETELY_EMPTY),
                )
            )
        else:
            logger.info(f"OU '{path}' has no users or groups but is not empty, keeping it")

    async def _plan_group_cleanup(
        self, container_path: str, groups: List[str], analysis: ImportAnalysis
    ) -> None:
        results = await self.query_runner.run_many(self.directory.is_group_empty, groups)
        for group_dn, empty in results:
            if isinstance(empty, BaseException):
                self._record_query_failure(analysis, group_dn, "check members of", empty)
                continue
            if not empty:
                continue
            group_name = extract_ou_name(group_dn)
            analysis.add_action(
                PendingAction(
                    action_type=ActionType.DELETE_GROUP,
                    object_name=group_name,
                    path=group_dn,
                    message=f"Delete empty group '{group_name}' in '{container_path}'",
                    metadata=DeleteGroupMetadata(container_path=container_path),
                )
            )

    @staticmethod
    def _record_query_failure(
        analysis: ImportAnalysis, subject: str, operation: str, error: BaseException
    ) -> None:
        logger.warning(f"Could not {operation} '{subject}': {error}")
        analysis.add_diagnostic(
            "query_error", f"Could not {operation} '{subject}': {error}", subject=subject
        )
