"""
Unit tests for RowMapper.
"""

from importer.models.import_config import ImportConfig
from importer.row_mapper import RowMapper


class TestRowMapper:
    """Tests for mapping spreadsheet rows to directory attributes."""

    def setup_method(self):
        self.config = ImportConfig(
            header_mapping={
                "givenName": "%Prenom%",
                "sn": "%Nom:uppercase%",
                "sAMAccountName": "%Prenom:firstchar%.%Nom%",
                "mail": "%Mail%",
                "description": "",
            },
            ou_column="Classe",
            default_domain="school.local",
        )
        self.mapper = RowMapper.for_config(self.config)

    def test_full_row(self):
        """Test templates are rendered then normalized per attribute."""
        row = {"Prenom": "jean", "Nom": "Dupont", "Mail": "", "Classe": " 6A "}

        result = self.mapper.map_row(row, self.config)

        assert result.attributes["givenName"] == "Jean"
        assert result.attributes["sn"] == "DUPONT"
        assert result.attributes["sAMAccountName"] == "j.dupont"
        assert result.attributes["displayName"] == "Jean DUPONT"
        assert result.attributes["userPrincipalName"] == "j.dupont@school.local"
        assert "mail" not in result.attributes
        assert "description" not in result.attributes
        assert result.grouping_value == " 6A "
        assert result.missing_columns == []
        assert result.missing_required == []
        assert result.sam_account_name == "j.dupont"

    def test_grouping_column_lookup_is_case_insensitive(self):
        row = {"Prenom": "Jean", "Nom": "Dupont", "Mail": "x", "classe": "6B"}

        result = self.mapper.map_row(row, self.config)

        assert result.grouping_value == "6B"

    def test_missing_columns_are_collected(self):
        """Test absent columns are reported without failing the row."""
        row = {"Prenom": "Jean", "Classe": "6A"}

        result = self.mapper.map_row(row, self.config)

        assert set(result.missing_columns) == {"Nom", "Mail"}
        assert result.attributes["sAMAccountName"] == "j"
        assert result.missing_required == ["sn"]
        assert result.needs_manual_correction

    def test_none_row(self):
        result = self.mapper.map_row(None, self.config)

        assert result.attributes == {}
        assert result.grouping_value is None

    def test_display_name_only_mapping(self):
        """Test a displayName-only mapping completes the required attributes."""
        config = ImportConfig(header_mapping={"displayName": "%Name%"})
        mapper = RowMapper.for_config(config)

        result = mapper.map_row({"Name": "Jean Dupont"}, config)

        assert result.attributes["givenName"] == "Jean"
        assert result.attributes["sn"] == "Dupont"
        assert result.attributes["sAMAccountName"] == "jean.dupont"
        assert result.grouping_value is None
