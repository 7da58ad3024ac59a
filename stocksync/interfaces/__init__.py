"""Interface layer for stocksync.

Packages under ``stocksync.interfaces`` expose boundary adapters such as CLI
commands.
"""
