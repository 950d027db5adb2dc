"""Offline audit of projection output: accounting identities + reports."""
