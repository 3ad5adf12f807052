"""
Ghost Automation REST API.

FastAPI application exposing the preview queue and the viral-to-leads
bridge. Run with: uvicorn ghostautomation.api.app:app
"""

__version__ = "0.1.0"
