"""
Feedback Triage Module
======================

Collects feedback from community and support channels, classifies it,
indexes it for similarity search and drives the triage workflow.

Layers:
- domain: entities, classification normalizing, workflow, aggregation
- application: services and DTOs
- infrastructure: persistence, LLM / vector store adapters, Slack
- interfaces: FastAPI routes
"""
