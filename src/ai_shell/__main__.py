"""Allow ``python -m ai_shell``."""

from ai_shell.repl import run

raise SystemExit(run())
