"""jsonsift — query JSON, JSONL and JSON-bearing log output from the shell.

Reads a whole JSON document when it can, otherwise classifies the input line
by line (JSONL records, log lines with a trailing JSON payload, pretty-printed
objects spread over several lines), runs a query expression against the
result and prints it.
"""

__version__ = "0.1.0"
