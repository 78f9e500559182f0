"""tenant/ -- Organization-scoped data access for SecAudit.

Every store method takes the caller's organization id as its first argument
and filters (reads) or stamps (writes) with it. The id is produced by the
identity resolver in auth/dependencies.py; nothing in tenant/ knows about
requests or cookies.

Layer rule: tenant/ imports only stdlib + third-party libraries + core/.
It does NOT import from api/ or auth/.
"""
