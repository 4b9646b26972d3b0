"""Pipeline stages: line ingestion and pairwise reduction.

Each stage exposes a small API and is configured from the `ingest.*` and
`reduce.*` sections of the runtime configuration.
"""
