"""MindSpace services.

Service layout:
- safety_service: Crisis screening runs before any responder call
- llm_service: Generative responder backends (OpenAI, HuggingFace)
- chat_service: Personas, reply composition, conversation storage, HTTP API
- wellness_service: Journals, mood check-ins, wellness summary

Owner identifiers are hashed with hash_pii() before they reach logs or
published events.
"""
