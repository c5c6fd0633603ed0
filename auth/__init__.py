"""auth/ -- Credential and session core for authcore.

Layer rule: auth/ imports only core/, stdlib and third-party libraries, plus
cache/ for wiring the session cache in auth/service.py.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
