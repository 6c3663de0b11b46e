"""auth/ -- Credential and session lifecycle core for SessionWarden.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/; configuration is passed into
constructors by the bootstrap. api/ imports from auth/, not the other way around.
"""
