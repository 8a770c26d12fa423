"""content/ -- Portfolio content: tasks, contact messages, projects, site settings.

Layer rule: content/ imports stdlib, third-party libraries and core/.
It does NOT import from api/, auth/, or mail/.
"""
