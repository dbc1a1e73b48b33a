"""
Schemas module - Request/Response schemas for API endpoints.

Schemas are the API contract (what client sends/receives); documents in
MongoDB are plain dicts handled by app.services.
"""
