"""Academic Records Backend.

Accounts, login and role-gated routes for a small student records system:
- Accounts are stored with a salted password hash and a fixed role
  (student, lecturer, admin).
- Sessions are stateless JWT bearer tokens.
- Students and lecturers keep a single profile row each.

Course, registration and result tables are part of the schema; the API
does not operate on them yet.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
