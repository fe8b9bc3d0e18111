"""CLI integration for codesync."""

from __future__ import annotations

from typing import TYPE_CHECKING

from litestar.plugins import CLIPluginProtocol

if TYPE_CHECKING:
    from click import Group


class CodeSyncCLIPlugin(CLIPluginProtocol):
    """Registers the ``collab`` command group with the Litestar CLI."""

    def on_cli_init(self, cli: Group) -> None:
        """Add codesync commands to the CLI.

        Args:
            cli: The root Litestar CLI group.
        """
        from codesync.cli.client import collab_group

        cli.add_command(collab_group)
