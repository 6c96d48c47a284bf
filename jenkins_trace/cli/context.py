"""Global CLI state and process exit codes.

Kept apart from ``main`` so command modules can import it without a cycle.
"""

import click


# Exit codes
EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_CONFIG_ERROR = 10
EXIT_TRANSPORT_ERROR = 13
EXIT_PROTOCOL_ERROR = 17
EXIT_DECODE_ERROR = 18


class Context:
    """Options given before the subcommand (``--json``, ``--debug``)."""

    def __init__(self) -> None:
        self.json_output = False
        self.debug = False


pass_context = click.make_pass_decorator(Context, ensure=True)
