import logging
from typing import Dict, Optional

from .attribute_normalizer import AttributeNormalizer
from .models.canonical_attributes import CanonicalAttributes
from .models.import_config import ImportConfig
from .template_engine import TemplateEngine, find_column

logger = logging.getLogger(__name__)


class RowMapper:
    """
    Turn one spreadsheet row into normalized directory attributes.

    Combines the template engine (column lookup and modifiers) with the
    attribute normalizer (formatting and required-attribute completion).
    """

    def __init__(
        self,
        template_engine: Optional[TemplateEngine] = None,
        normalizer: Optional[AttributeNormalizer] = None,
    ):
        self.template_engine = template_engine or TemplateEngine()
        self.normalizer = normalizer or AttributeNormalizer()

    @classmethod
    def for_config(
        cls, config: ImportConfig, template_engine: Optional[TemplateEngine] = None
    ) -> "RowMapper":
        return cls(template_engine, AttributeNormalizer(default_domain=config.default_domain))

    def map_row(
        self, row: Optional[Dict[str, str]], config: ImportConfig
    ) -> CanonicalAttributes:
        """
        Map a row through every configured template.

        The grouping column value is copied through raw; it drives OU placement
        and must not be normalized as an attribute.

        Args:
            row: Row data keyed by column name (None yields an empty result)
            config: Import configuration holding header_mapping and ou_column

        Returns:
            CanonicalAttributes: Normalized attributes and diagnostics for the row
        """
        result = CanonicalAttributes()
        if row is None:
            logger.warning("map_row called with a None row")
            return result

        for attribute, template in (config.header_mapping or {}).items():
            if template is None or not template.strip():
                continue

            value = self.template_engine.render(template, row, result.missing_columns)
            if value and value.strip():
                result.attributes[attribute] = self.normalizer.normalize(attribute, value)

        if config.ou_column:
            key = find_column(row, config.ou_column)
            if key is not None:
                raw = row[key]
                if raw is not None and str(raw).strip():
                    result.grouping_value = str(raw)

        result.missing_required = self.normalizer.validate_required(result.attributes)
        if result.missing_required:
            logger.warning(
                f"Row still missing required attributes after auto-completion: "
                f"{', '.join(result.missing_required)}"
            )
        return result
