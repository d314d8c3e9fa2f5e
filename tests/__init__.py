"""Test suite for the clinical-trials report pipeline.

Unit tests cover parsing, normalization, page planning, the registry
client, deduplication and the cache. To run the tests, execute `pytest`
from the project root.
"""
