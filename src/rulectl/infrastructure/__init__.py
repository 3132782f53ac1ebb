"""Infrastructure layer — JSON store, provider client, rate limiting.

Infrastructure may import from the domain layer, never from services.
"""
