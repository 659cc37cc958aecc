"""
Parse connection details passed by the host application at launch.

The host passes a single argument shaped like
"Server=localhost:12345;Database=abc123;ApplicationName=..." (possibly
split over several argv entries). Missing parts come back as "".
"""

import re
from typing import Iterable, Tuple

_SERVER_RE = re.compile(r"Server=([^;]+)")
_DATABASE_RE = re.compile(r"Database=([^;]+)")


def parse_connection_args(argv: Iterable[str]) -> Tuple[str, str]:
    """
    Extract (server, database) from command-line arguments.

    Later arguments override earlier ones, matching how the host appends
    its connection string after its own flags.
    """
    server = ""
    database = ""

    for arg in argv:
        if "Server=" not in arg and "Database=" not in arg:
            continue

        server_match = _SERVER_RE.search(arg)
        if server_match:
            server = server_match.group(1).strip().strip('"')

        database_match = _DATABASE_RE.search(arg)
        if database_match:
            database = database_match.group(1).strip().strip('"')

    return server, database
