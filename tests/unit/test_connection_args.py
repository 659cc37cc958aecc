from semantic_chat.utils.connection_args import parse_connection_args


def test_single_connection_string():
    assert parse_connection_args(["Server=localhost:12345;Database=abc123"]) == ("localhost:12345", "abc123")


def test_split_over_arguments():
    argv = ["--flag", "Server=localhost:1;", "Database=db-2;ApplicationName=Host"]
    assert parse_connection_args(argv) == ("localhost:1", "db-2")


def test_quoted_values():
    assert parse_connection_args(['Server="localhost:9";Database="x"']) == ("localhost:9", "x")


def test_later_arguments_win():
    argv = ["Server=old:1;Database=a", "Server=new:2"]
    assert parse_connection_args(argv) == ("new:2", "a")


def test_missing_parts():
    assert parse_connection_args([]) == ("", "")
    assert parse_connection_args(["--verbose"]) == ("", "")
    assert parse_connection_args(["Server=host:1"]) == ("host:1", "")
