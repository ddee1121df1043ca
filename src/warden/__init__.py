"""Governance bot for a privileged member group."""
