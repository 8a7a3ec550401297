"""Entry point for ``python -m bob_builder``."""

from bob_builder.cli import app

app(prog_name="bob")
