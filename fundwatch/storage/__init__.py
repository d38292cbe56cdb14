"""
Persistence for rules, templates and scheduled notifications.

Components:
- kv: key-value backends (memory, file, Redis)
- stores: typed JSON collections built on a key-value backend
"""
