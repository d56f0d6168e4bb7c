"""Slash commands exposing the team-formation service on Discord."""
