"""
Prompt composition.

Responsibilities:
- Encode each selection protocol as an independent rule object.
- Assemble the system instruction from the active rules only.
- Serialise the search request and candidates into the user payload.
"""
