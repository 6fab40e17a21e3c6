"""
OneTask client library.

Productivity data access, RAG context assembly and the chat assistant
pipeline for the OneTask backend.
"""
