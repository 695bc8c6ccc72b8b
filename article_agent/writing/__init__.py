"""Prompt synthesis and article assembly."""
