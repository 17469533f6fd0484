"""ai-shell — an interactive line-oriented command interpreter.

The interpreter reads a line, tokenizes it, strips redirection
operators, and runs the result either as a builtin or as an external
program.  Pipelines connect stages with in-memory couplers; history is
kept in memory and optionally persisted to ``$HISTFILE``.
"""

__version__ = "0.1.0"
