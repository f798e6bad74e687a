"""Entry point for ``python -m devreclaim`` and the ``devreclaim`` script."""

from __future__ import annotations

from devreclaim.app.cli import cli

__all__ = ["main"]


def main() -> None:
    """Run the command-line interface."""
    cli.main(prog_name="devreclaim")


if __name__ == "__main__":
    main()
