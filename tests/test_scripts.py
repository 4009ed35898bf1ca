"""
Tests for SQL script parsing and execution.
"""

from pathlib import Path

import pytest

from twpatcher.errors import DuplicateKeyError, MissingParameterError, ScriptSyntaxError
from twpatcher.scripts import (
    ScriptProcessor,
    ScriptRequest,
    combine_results,
    parse_script_arg,
    parse_script_text,
    script_tables,
    split_statements,
    substitute_params,
)


@pytest.fixture
def merged_tables(merger_factory, vanilla_pack):
    return merger_factory([vanilla_pack]).merge_many(
        ["land_units_tables", "campaign_variables_tables"], [],
    ).tables


def write_script(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


class TestParsing:

    def test_header_tables(self):
        script = parse_script_text(
            "-- Tables to import:\n"
            "-- land_units\n"
            "-- campaign_variables_tables\n"
            "-- End of tables to import.\n"
            "UPDATE land_units_tables SET num_men = 1;\n"
        )

        assert script.tables == ["land_units_tables", "campaign_variables_tables"]

    def test_string_replacements_apply_in_reverse(self):
        script = parse_script_text(
            "-- Strings to replace:\n"
            "-- INNER ::: class = 'inf_mel'\n"
            "------\n"
            "-- OUTER ::: SELECT key FROM land_units_tables\n"
            "--           WHERE INNER\n"
            "-- End of strings to replace.\n"
            "UPDATE land_units_tables SET num_men = 2 WHERE key IN (OUTER);\n"
        )

        assert "WHERE key IN (SELECT key FROM land_units_tables WHERE class = 'inf_mel')" in script.body
        assert "OUTER" not in script.body
        assert "INNER" not in script.body
        assert [k for k, _ in script.replacements] == ["INNER", "OUTER"]

    def test_unterminated_header(self):
        with pytest.raises(ScriptSyntaxError):
            parse_script_text("-- Tables to import:\n-- land_units\n")

    def test_split_respects_quotes_and_comments(self):
        body = (
            "UPDATE t SET a = 'x;y'; -- trailing; comment\n"
            "/* block; comment */ INSERT INTO t VALUES ('it''s');\n"
            "SELECT 1"
        )

        assert split_statements(body) == [
            "UPDATE t SET a = 'x;y'",
            "INSERT INTO t VALUES ('it''s')",
            "SELECT 1",
        ]

    def test_substitute(self):
        params = {"0": "1.5", "unit": "'wh_spearmen'"}

        result = substitute_params("UPDATE t SET x = x * $0 WHERE key = $unit", params)

        assert result == "UPDATE t SET x = x * 1.5 WHERE key = 'wh_spearmen'"

    def test_missing_parameter(self):
        with pytest.raises(MissingParameterError) as exc:
            substitute_params("SELECT $1", {"0": "a"})
        assert exc.value.name == "1"

    def test_dollar_words_inside_string_literals_are_text(self):
        statement = "UPDATE t SET class = 'cost $gold' WHERE key = $0"

        result = substitute_params(statement, {"0": "'a'"})

        assert result == "UPDATE t SET class = 'cost $gold' WHERE key = 'a'"

    def test_supplied_parameter_inside_quotes_is_filled(self):
        result = substitute_params("SELECT 'it''s $0', $0", {"0": "5"})

        assert result == "SELECT 'it''s 5', 5"

    def test_script_argument(self):
        request = parse_script_arg('scripts/fix.sql;1.5;"a;b";limit=10')

        assert request.path == Path("scripts/fix.sql")
        assert request.params == {"0": "1.5", "1": "a;b", "limit": "10"}


class TestExecution:

    def test_update_applies(self, merged_tables, tmp_path):
        path = write_script(tmp_path, "double.sql", (
            "-- Tables to import:\n-- land_units\n-- End of tables to import.\n"
            "UPDATE land_units_tables SET num_men = num_men * $0 WHERE class = 'inf_mel';\n"
        ))

        result = ScriptProcessor(merged_tables).run_file(ScriptRequest(path, {"0": "2"}))

        assert result.ok
        rows = result.edits.tables["land_units_tables"]
        assert list(rows) == [("wh_spearmen",)]
        assert rows[("wh_spearmen",)]["num_men"] == 80

    def test_duplicate_insert_keeps_earlier_update(self, merged_tables, tmp_path):
        path = write_script(tmp_path, "dup.sql", (
            "UPDATE land_units_tables SET num_men = 99 WHERE key = 'wh_spearmen';\n"
            "INSERT INTO land_units_tables VALUES ('wh_giant', 'mon', 1, 0, 0, 0.0, 0.0);\n"
            "UPDATE land_units_tables SET num_men = 5 WHERE key = 'wh_cannon';\n"
        ))

        result = ScriptProcessor(merged_tables).run_file(ScriptRequest(path))

        assert isinstance(result.error, DuplicateKeyError)
        assert result.error.table_name == "land_units_tables"
        assert result.statements_run == 1
        rows = result.edits.tables["land_units_tables"]
        assert rows[("wh_spearmen",)]["num_men"] == 99
        assert ("wh_cannon",) not in rows

    def test_insert_new_row(self, merged_tables, tmp_path):
        path = write_script(tmp_path, "new.sql", (
            "INSERT INTO campaign_variables_tables (variable_key, value, description) "
            "VALUES ('new_limit', 12, 'added');\n"
        ))

        result = ScriptProcessor(merged_tables).run_file(ScriptRequest(path))

        assert result.ok
        row = result.edits.tables["campaign_variables_tables"][("new_limit",)]
        assert row == {"variable_key": "new_limit", "value": 12.0, "description": "added"}

    def test_missing_parameter_fails_only_that_script(self, merged_tables, tmp_path):
        first = write_script(tmp_path, "first.sql", "UPDATE land_units_tables SET num_men = $0;\n")
        second = write_script(tmp_path, "second.sql", (
            "UPDATE campaign_variables_tables SET value = 1 WHERE variable_key = 'max_traits';\n"
        ))

        results = ScriptProcessor(merged_tables).run_all([ScriptRequest(first), ScriptRequest(second)])

        assert isinstance(results[0].error, MissingParameterError)
        assert results[0].edits.is_empty
        assert results[1].ok
        assert results[1].edits.row_count() == 1

    def test_syntax_error(self, merged_tables, tmp_path):
        path = write_script(tmp_path, "bad.sql", "UPDATE land_units_tables SETT num_men = 1;\n")

        result = ScriptProcessor(merged_tables).run_file(ScriptRequest(path))

        assert isinstance(result.error, ScriptSyntaxError)

    def test_later_scripts_see_earlier_changes(self, merged_tables, tmp_path):
        first = write_script(tmp_path, "a.sql", "UPDATE land_units_tables SET num_men = 10 WHERE key = 'wh_spearmen';")
        second = write_script(tmp_path, "b.sql", "UPDATE land_units_tables SET num_men = num_men + 1 WHERE key = 'wh_spearmen';")

        results = ScriptProcessor(merged_tables).run_all([ScriptRequest(first), ScriptRequest(second)])
        combined = combine_results(results)

        assert combined.tables["land_units_tables"][("wh_spearmen",)]["num_men"] == 11
        assert merged_tables["land_units_tables"].get(("wh_spearmen",))["num_men"] == 40

    def test_deleted_rows_are_warned_not_written(self, merged_tables, tmp_path):
        path = write_script(tmp_path, "del.sql", "DELETE FROM land_units_tables WHERE key = 'wh_giant';")

        result = ScriptProcessor(merged_tables).run_file(ScriptRequest(path))

        assert result.ok
        assert result.edits.is_empty
        assert len(result.warnings) == 1

    def test_unreadable_script(self, merged_tables, tmp_path):
        result = ScriptProcessor(merged_tables).run_file(ScriptRequest(tmp_path / "missing.sql"))

        assert not result.ok

    def test_script_tables_defaults_to_all(self, tmp_path):
        with_header = write_script(tmp_path, "h.sql", (
            "-- Tables to import:\n-- land_units\n-- End of tables to import.\nSELECT 1;"
        ))
        without = write_script(tmp_path, "n.sql", "SELECT 1;")

        names = script_tables([ScriptRequest(with_header), ScriptRequest(without)], ["a_tables", "b_tables"])

        assert names == ["land_units_tables", "a_tables", "b_tables"]
