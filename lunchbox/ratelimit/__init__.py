"""
Admission control.

Responsibilities:
- Count calls per caller identity in a fixed window (60 s, 20 calls).
- Keep the table in process memory, or in Redis when several instances
  must share one quota.
- Map denials to HTTP 429 at the API boundary.
"""
