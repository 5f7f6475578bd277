"""Domain models and entities.

Why:
- Pure, strict data structures (Pydantic v2) live here.
- The domain knows nothing about HTTP, the CLI or reports: only the concepts
  of a UCP profile and of a simulated agent run.
"""
