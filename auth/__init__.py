"""
auth — User authentication module.

Provides:
  • Session-cookie login (Starlette ``SessionMiddleware``)
  • Signed bearer tokens for API clients
  • Password hashing (bcrypt)
  • Register / Login / Logout / Me API routes
  • ``get_current_user_id`` FastAPI dependency
"""
