"""
Lunch recommendation engine.

Responsibilities:
- Accept a search request (origin, vibe, budget tier, payment and dietary
  constraints) together with pre-fetched candidate venues.
- Drop cash-only candidates locally for cashless searches.
- Serve equivalent searches from a namespaced TTL cache.
- Validate the model's ranking against the candidates and return a bounded,
  ordered list ready for API serialisation.
"""
