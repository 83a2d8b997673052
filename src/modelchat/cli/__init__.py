"""Command-line shell for modelchat."""
