"""
auth — client-side authentication core.

Provides:
  • ``AuthContext`` — single owner of the auth state and persisted token
  • ``CredentialClient`` — register / login / OTP / reset / email-change calls
  • session stores (file-backed and in-memory) for token + session id
  • route guards gating pages by login presence and role
"""
