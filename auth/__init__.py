"""auth/ -- Authentication, verification and ownership package for Folio.

Layer rule: auth/ imports stdlib, third-party libraries, core/ and mail/.
It does NOT import from api/ or content/.
api/ imports from auth/, not the other way around.
"""
