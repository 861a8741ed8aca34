import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from directory.base_directory import BaseDirectory

from .models.import_analysis import ImportAnalysis
from .models.import_config import ImportConfig
from .query_runner import DirectoryQueryRunner
from .reconciliation_planner import ContainerState, ReconciliationPlanner
from .row_mapper import RowMapper
from .template_engine import TemplateEngine
from .user_planner import MappedRow, UserPlanner

logger = logging.getLogger(__name__)


class ImportAnalyzer:
    """
    Build the complete action plan for one spreadsheet import.

    Runs, in order: structural creation (Pass A), user planning, orphan
    detection and empty-object cleanup (Pass B). The directory is only read;
    the returned ImportAnalysis is applied elsewhere.

    Args:
        directory: Read-only directory query implementation
        max_concurrent_queries: Cap on outstanding directory queries
            (defaults to the config's value)
        template_engine: Shared template engine, a new one is created if None
    """

    def __init__(
        self,
        directory: BaseDirectory,
        max_concurrent_queries: Optional[int] = None,
        template_engine: Optional[TemplateEngine] = None,
    ):
        self.directory = directory
        self.max_concurrent_queries = max_concurrent_queries
        self.template_engine = template_engine or TemplateEngine()

    def map_rows(
        self, rows: List[Dict[str, str]], config: ImportConfig, analysis: ImportAnalysis
    ) -> List[MappedRow]:
        """Map every row and record its missing-column and missing-attribute diagnostics."""
        mapper = RowMapper.for_config(config, self.template_engine)
        mapped_rows = []

        for index, row in enumerate(rows):
            canonical = mapper.map_row(row, config)
            for column in dict.fromkeys(canonical.missing_columns):
                analysis.add_diagnostic(
                    "missing_column",
                    f"Column '{column}' referenced by a template is missing",
                    row_index=index,
                    subject=column,
                )
            for attribute in canonical.missing_required:
                analysis.add_diagnostic(
                    "missing_required",
                    f"Required attribute '{attribute}' could not be filled",
                    row_index=index,
                    subject=attribute,
                )
            mapped_rows.append(MappedRow(row_index=index, row=row or {}, canonical=canonical))

        return mapped_rows

    async def analyze(
        self,
        rows: List[Dict[str, str]],
        config: Optional[ImportConfig],
        scanned_containers: Optional[Iterable[str]] = None,
    ) -> ImportAnalysis:
        """
        Plan the import of rows against the current directory.

        Args:
            rows: Spreadsheet rows keyed by column name
            config: Import configuration (a default one is used when None)
            scanned_containers: Extra containers to consider for cleanup

        Returns:
            ImportAnalysis: Ordered actions, diagnostics and summary
        """
        config = ImportConfig.ensure(config)
        rows = list(rows or [])
        analysis = ImportAnalysis(total_rows=len(rows))
        limit = self.max_concurrent_queries or config.max_concurrent_queries

        logger.info(f"Starting import analysis of {len(rows)} rows")
        runner = DirectoryQueryRunner(max_concurrent_queries=limit)
        try:
            structure = ReconciliationPlanner(self.directory, runner)
            users = UserPlanner(self.directory, runner)

            state = ContainerState()
            if config.ou_column:
                state = await structure.plan_structure(rows, config, analysis)
            else:
                logger.info("No OU column configured, all users go to the default OU")

            mapped_rows = self.map_rows(rows, config, analysis)
            imported = await users.plan_users(mapped_rows, config, analysis, state)

            cleanup_candidates = list(scanned_containers or [])
            if config.delete_not_in_import:
                cleanup_candidates.extend(await users.plan_orphans(imported, config, analysis))

            if config.cleanup_empty_ous:
                await structure.plan_cleanup(cleanup_candidates, config, analysis)
        finally:
            runner.shutdown()

        summary = analysis.summary
        logger.info(
            f"✅ Import analysis complete: {summary.total_actions} actions, "
            f"{summary.error_count} errors, {summary.diagnostic_count} diagnostics"
        )
        return analysis

    def analyze_sync(
        self,
        rows: List[Dict[str, str]],
        config: Optional[ImportConfig],
        scanned_containers: Optional[Iterable[str]] = None,
    ) -> ImportAnalysis:
        """Blocking wrapper around analyze() for scripts."""
        return asyncio.run(self.analyze(rows, config, scanned_containers))
