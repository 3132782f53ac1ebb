"""Domain layer — pure types and algorithms.

Nothing here performs I/O. Services and infrastructure import from the
domain; the domain never imports from them.
"""
