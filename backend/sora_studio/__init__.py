"""Sora Studio: video generation orchestration."""
