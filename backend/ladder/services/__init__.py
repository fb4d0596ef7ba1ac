"""
Services Layer

Business logic for the ladder:
- Accept domain inputs (sessions, users, parsed slots)
- Return domain outputs (models, dicts, dataclasses)
- Do NOT depend on HTTP request/response objects
- Raise ladder.errors exceptions; routes turn them into JSON errors
"""
