"""
Tests for the command line analysis script.
"""

import pytest

from app.utils.export import read_exported_csv
from scripts.analyze_climate import main


def printed_rows(capsys):
    """Bucket rows printed to stdout (tab separated), ignoring any log output."""
    return [line for line in capsys.readouterr().out.splitlines() if "\t" in line]


@pytest.fixture
def data_file(tmp_path):
    path = tmp_path / "daily.csv"
    path.write_text("2020,1,1,10,2\n2020,1,2,20,-1\n2020,2,1,15,5\n2021,6,1,31,19\n")
    return path


class TestAnalyzeClimateScript:
    """Test scripts.analyze_climate.main."""

    def test_prints_buckets(self, data_file, capsys):
        """Test that buckets are printed as label and value."""
        assert main([str(data_file), "--period", "monthly", "--end-year", "2020"]) == 0
        assert printed_rows(capsys) == ["2020-01\t15", "2020-02\t15"]

    def test_writes_export(self, data_file, tmp_path):
        """Test writing the buckets to a CSV file."""
        output = tmp_path / "chart_data.csv"
        code = main([
            str(data_file),
            "--kind", "countAbove",
            "--threshold", "12",
            "--output", str(output),
        ])
        assert code == 0

        rows = read_exported_csv(output.read_text())
        assert [(r["year"], r["value"]) for r in rows] == [(2020, 2.0), (2021, 1.0)]

    def test_season_filter(self, data_file, capsys):
        """Test the season filter option."""
        assert main([str(data_file), "--season", "summer", "--field", "TN"]) == 0
        assert printed_rows(capsys) == ["2021\t19"]

    def test_missing_file(self, tmp_path):
        """Test the exit status for a missing file."""
        assert main([str(tmp_path / "nope.csv")]) == 1

    def test_malformed_file(self, tmp_path):
        """Test the exit status for an unparsable file."""
        path = tmp_path / "bad.csv"
        path.write_text("2020,1,1,ten,2\n")
        assert main([str(path)]) == 1

    def test_invalid_options(self, data_file):
        """Test the exit status for invalid options."""
        assert main([str(data_file), "--month", "13"]) == 2
        assert main([str(data_file), "--start-year", "2021", "--end-year", "2020"]) == 2

    def test_unknown_choice_exits(self, data_file):
        """Test that argparse rejects an unknown period."""
        with pytest.raises(SystemExit):
            main([str(data_file), "--period", "weekly"])

    def test_missing_value_prints_empty(self, tmp_path, capsys):
        """Test that a bucket without data prints an empty value."""
        path = tmp_path / "gap.csv"
        path.write_text("2020,1,1,,2\n")
        assert main([str(path)]) == 0
        assert printed_rows(capsys) == ["2020\t"]
