"""
Users module.

- Users CRUD with hashed passwords
- Role, group, subject and parent/child assignment (sync semantics)
- Profile pages: own profile for everyone, others' behind the users permissions
"""
