"""
core/commands.py -- The dashboard's command surface.

A handful of shell-flavoured stand-ins. None of them touch the filesystem;
each returns the text the dashboard prints under the prompt.

No side effects. No I/O. Called by web/routes.py for POST /dashboard.
"""

from collections.abc import Callable

UNKNOWN_COMMAND = "Unknown command"


def _cd() -> str:
    return "unfortunately, i cannot afford more directories.\nif you want to help, you can ... '."


def _ls() -> str:
    return "This is the list of files: file1.txt, file2.txt, file3.txt"


def _clear() -> str:
    return ""


COMMANDS: dict[str, Callable[[], str]] = {
    "cd": _cd,
    "ls": _ls,
    "clear": _clear,
}


def run_command(command: str) -> str:
    """Return the output for `command`, or UNKNOWN_COMMAND.

    Matching is exact: surrounding whitespace is stripped, arguments are not
    supported, and names are case-sensitive like a real shell.
    """
    handler = COMMANDS.get(command.strip())
    if handler is None:
        return UNKNOWN_COMMAND
    return handler()
