"""auth/ -- Credential lookup, audit logging and session handling for ShellGate.

Layer rule: auth/ imports only stdlib + third-party libraries and core/.
It does NOT import from api/ or web/.
api/ and web/ import from auth/, not the other way around.
"""
