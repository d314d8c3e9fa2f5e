"""Clinical-trials registry acquisition and cleaning pipeline.

Queries the registry's search API per therapeutic area, normalizes the
returned records into typed columns and deduplicates studies matched by
several topics, producing the dataset the report's charts are drawn from.
"""

__version__ = "0.1.0"
