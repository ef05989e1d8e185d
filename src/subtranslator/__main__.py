"""Allow running as python -m subtranslator."""

from subtranslator.cli import app

app()
