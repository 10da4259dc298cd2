"""
LLM integration layer.

Responsibilities:
- Declare the structured output schemas the model must follow.
- Call Groq under a structured-output directive (one call, no retries).
- Proxy raw generation requests to the Gemini and OpenRouter REST APIs.
"""
