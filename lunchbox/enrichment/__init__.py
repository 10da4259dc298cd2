"""
Best-effort menu enrichment.

Responsibilities:
- Fetch a restaurant website with its own 10 s timeout and reduce it to text.
- Ask the model to extract dishes, cuisine and specialties.
- Merge whatever finishes before a deadline into candidates; never fail the
  primary recommendation pipeline.
"""
