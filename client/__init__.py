"""
client — HTTP boundary to the ERP REST backend.

Provides:
  • ``ApiClient`` — shared httpx client (base URL, 15 s timeout,
    ``x-auth-token`` header injection)
  • error taxonomy for backend rejections and transport failures
  • base-URL normalisation helpers
"""
