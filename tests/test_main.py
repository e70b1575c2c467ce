import pytest
import io

from main import main
from records import iter_events


@pytest.fixture
def input_table(tmp_path):
    path = tmp_path / "transactions.csv"
    path.write_text(
        "type,client,tx,amount\n"
        "deposit,1,1,1.0\n"
        "deposit,2,2,2.0\n"
        "deposit,1,3,2.0\n"
        "withdrawal,1,4,1.5\n"
        "withdrawal,2,5,3.0\n"
        "deposit,3,6,100\n"
        "dispute,3,6,\n"
        "chargeback,3,6,\n",
        encoding="utf-8"
    )
    return path


def output_rows(out):
    lines = out.splitlines()
    return lines[0], sorted(lines[1:])


class TestCommandLine:
    """Test the command-line entry point."""

    def test_prints_accounts_table(self, input_table, capsys):
        """Test a readable input prints one row per client."""
        exit_code = main([str(input_table), "--env", "testing"])

        captured = capsys.readouterr()
        header, rows = output_rows(captured.out)
        assert exit_code == 0
        assert header == "client_id,available,held,total,locked"
        assert rows == [
            "1,1.5000,0,1.5000,false",
            "2,2.0000,0,2.0000,false",
            "3,0.0000,0.0000,0.0000,true",
        ]

    def test_sequential_flag(self, input_table, capsys):
        """Test the sequential fold prints the same table."""
        main([str(input_table), "--env", "testing"])
        parallel = output_rows(capsys.readouterr().out)

        exit_code = main([str(input_table), "--env", "testing", "--sequential"])

        assert exit_code == 0
        assert output_rows(capsys.readouterr().out) == parallel

    def test_missing_file(self, tmp_path, capsys):
        """Test an unreadable path fails with the path in the error."""
        path = tmp_path / "nope.csv"

        exit_code = main([str(path), "--env", "testing"])

        captured = capsys.readouterr()
        assert exit_code == 1
        assert captured.out == ""
        assert str(path) in captured.err

    def test_oversized_and_undecodable_rows_skipped(self, tmp_path, capsys):
        """Test rows that cannot be represented are dropped and the run still succeeds."""
        path = tmp_path / "transactions.csv"
        path.write_bytes(
            b"type,client,tx,amount\n"
            b"deposit,1,1,1000000000000000000000000000\n"
            b"deposit,1,2,\xff\n"
            b"deposit,2,3,5\n"
        )

        exit_code = main([str(path), "--env", "testing"])

        header, rows = output_rows(capsys.readouterr().out)
        assert exit_code == 0
        assert rows == ["2,5.0000,0,5.0000,false"]

    def test_malformed_header(self, tmp_path, capsys):
        """Test a malformed header fails the run."""
        path = tmp_path / "bad.csv"
        path.write_text("a,b,c\n1,2,3\n", encoding="utf-8")

        assert main([str(path), "--env", "testing"]) == 1
        assert "header" in capsys.readouterr().err

    def test_path_required(self, capsys):
        """Test the path is required without --generate."""
        with pytest.raises(SystemExit) as excinfo:
            main(["--env", "testing"])

        assert excinfo.value.code == 2

    def test_generate(self, capsys):
        """Test --generate prints a parseable input table."""
        exit_code = main(["--generate", "--num-txns", "25", "--num-clients", "3", "--env", "testing"])

        out = capsys.readouterr().out
        events = list(iter_events(io.StringIO(out)))
        assert exit_code == 0
        assert len(events) == 25
        assert {e.client_id for e in events} <= {1, 2, 3}

    def test_generate_rejects_bad_client_count(self, capsys):
        """Test --num-clients must fit a client id."""
        with pytest.raises(SystemExit):
            main(["--generate", "--num-clients", "0", "--env", "testing"])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
