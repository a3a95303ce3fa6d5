"""
account — signed-in account management (active sessions, profile,
password change, notification preferences).
"""
