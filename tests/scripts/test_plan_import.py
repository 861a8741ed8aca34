"""
Tests for the plan_import command-line script.
"""

import json
import sys
from argparse import Namespace
from unittest.mock import patch

import pytest

from conftest import BASE_OU, FakeDirectory
from importer.config_store import ImportConfigStore
from importer.exceptions import ImportConfigError
from importer.models.import_config import ImportConfig
from scripts import plan_import

CONFIG_DOCUMENT = {
    "headerMapping": {
        "givenName": "%Prenom:capitalize%",
        "sn": "%Nom:uppercase%",
        "sAMAccountName": "%Prenom%.%Nom%",
    },
    "ouColumn": "Classe",
    "defaultOU": BASE_OU,
}

SETTINGS = {
    "max_concurrent_queries": 4,
    "log_dir": "logs",
    "config_store": "import_configs.json",
    "default_domain": "school.local",
}


@pytest.fixture
def input_csv(tmp_path):
    path = tmp_path / "students.csv"
    path.write_text("Prenom;Nom;Classe\njean;Dupont;Math\nMarie;Curie;\n", encoding="utf-8")
    return path


@pytest.fixture
def config_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(CONFIG_DOCUMENT), encoding="utf-8")
    return path


class TestHelpers:
    """Tests for the script's helper functions."""

    def test_read_rows_keeps_empty_cells_as_text(self, input_csv):
        rows = plan_import.read_rows(str(input_csv), ";")

        assert rows == [
            {"Prenom": "jean", "Nom": "Dupont", "Classe": "Math"},
            {"Prenom": "Marie", "Nom": "Curie", "Classe": ""},
        ]

    def test_json_config_gets_default_domain(self, config_json):
        args = Namespace(config_json=str(config_json), config_id=None, config_store=None)

        config = plan_import.load_import_config(args, SETTINGS)

        assert config.default_domain == "school.local"
        assert config.ou_column == "Classe"

    def test_saved_config(self, tmp_path):
        store_path = str(tmp_path / "store.json")
        ImportConfigStore(store_path).save("students", "Students", ImportConfig(ou_column="Classe"))
        args = Namespace(config_json=None, config_id="students", config_store=store_path)

        assert plan_import.load_import_config(args, SETTINGS).ou_column == "Classe"

    def test_saved_config_gets_default_domain(self, tmp_path):
        store_path = str(tmp_path / "store.json")
        store = ImportConfigStore(store_path)
        store.save("students", "Students", ImportConfig(ou_column="Classe"))
        store.save("staff", "Staff", ImportConfig(default_domain="staff.school.local"))

        def load(config_id):
            args = Namespace(config_json=None, config_id=config_id, config_store=store_path)
            return plan_import.load_import_config(args, SETTINGS)

        assert load("students").default_domain == "school.local"
        assert load("staff").default_domain == "staff.school.local"

    def test_unknown_saved_config(self, tmp_path):
        args = Namespace(
            config_json=None, config_id="missing", config_store=str(tmp_path / "store.json")
        )

        with pytest.raises(ImportConfigError):
            plan_import.load_import_config(args, SETTINGS)


@patch("scripts.plan_import.setup_logging")
@patch("scripts.plan_import.load_dotenv")
@patch("scripts.plan_import.ImporterConfig.get_config", return_value=SETTINGS)
@patch("scripts.plan_import.DirectoryFacade")
class TestMain:
    """Tests for the main entry point with the directory faked."""

    def test_writes_json_plan(
        self, mock_facade, mock_settings, mock_dotenv, mock_logging, input_csv, config_json, tmp_path, capsys
    ):
        mock_facade.return_value.__enter__.return_value = FakeDirectory(containers=[BASE_OU])
        output = tmp_path / "plan.json"
        argv = [
            "plan_import.py",
            "--input", str(input_csv),
            "--config-json", str(config_json),
            "--output", str(output),
        ]

        with patch.object(sys, "argv", argv):
            plan_import.main()

        plan = json.loads(output.read_text(encoding="utf-8"))
        kinds = [a["action_type"] for a in plan["actions"]]
        assert kinds == ["CREATE_OU", "CREATE_GROUP", "CREATE_GROUP", "CREATE_USER", "CREATE_USER"]
        assert plan["actions"][4]["path"] == BASE_OU
        assert plan["summary"]["create_user_count"] == 2
        assert "Plan saved to" in capsys.readouterr().out

    def test_writes_csv_plan(
        self, mock_facade, mock_settings, mock_dotenv, mock_logging, input_csv, config_json, tmp_path
    ):
        mock_facade.return_value.__enter__.return_value = FakeDirectory(containers=[BASE_OU])
        output = tmp_path / "plan.csv"
        argv = [
            "plan_import.py",
            "--input", str(input_csv),
            "--config-json", str(config_json),
            "--output", str(output),
            "--format", "csv",
        ]

        with patch.object(sys, "argv", argv):
            plan_import.main()

        header = output.read_text(encoding="utf-8").splitlines()[0]
        assert header.startswith("order,action_type,object_name,path,message,row_index")

    def test_failure_exits_with_error(
        self, mock_facade, mock_settings, mock_dotenv, mock_logging, input_csv, tmp_path
    ):
        argv = [
            "plan_import.py",
            "--input", str(input_csv),
            "--config-id", "missing",
            "--config-store", str(tmp_path / "store.json"),
        ]

        with patch.object(sys, "argv", argv):
            with pytest.raises(SystemExit) as exc_info:
                plan_import.main()

        assert exc_info.value.code == 1
        mock_facade.assert_not_called()
