"""
Email, calendar and assistant services used by the API routes.
"""
