"""auth/ -- Identity package for SecAudit: credentials, sessions, request context.

Layer rule: auth/ imports only stdlib + third-party libraries + core/.
It does NOT import from api/ or tenant/.
api/ imports from auth/, not the other way around.
"""
