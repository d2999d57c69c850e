"""
Services layer - Business logic goes here.
Keep services focused on specific domains (enrichment, storage, geo, analytics).

DESIGN PRINCIPLE:
- Services contain business logic, NOT routes
- AI output is sanitized before it reaches storage
- A failing AI provider degrades a report, it never rejects one
"""
