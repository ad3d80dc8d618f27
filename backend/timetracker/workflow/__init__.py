"""
Approval workflow rules for time entries and time sheets.

Every check is a pure function over snapshots supplied by the caller and
returns a ``PermissionResult``; the mutation helpers only set fields on the
objects they are given and never touch the database.
"""
