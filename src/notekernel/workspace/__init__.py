"""Workspace selection, layout and exclusive ownership.

Provides PathRegistry (persisted list of used workspaces), WorkspaceResolver
(picks and lays out the active workspace) and the advisory workspace lock.
"""
