"""
Permission feature module.

Resolves system roles and organization memberships into per-tool view/edit
matrices, and guards routes on them.
"""
