"""Integration test package.

These tests exercise the whole pipeline and the CLI against an
in-process fake of the registry API, so no network access is needed.
"""
