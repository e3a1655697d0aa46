"""
Services module - Application business logic layer.

Modules:
- catalog: Provider capability registry
- adapter: AI provider abstraction layer
- chat: Turn normalization, streaming and persistence
"""
