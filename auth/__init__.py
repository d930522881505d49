"""auth/ -- Authentication and authorization package for Folio.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, projects/, or contacts/.
api/ imports from auth/, not the other way around.
"""
