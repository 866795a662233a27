"""Authentication and authorization.

Two layers:
1. Identity: email/password → JWT access/refresh tokens; every request
   and every realtime handshake is authenticated from the access token.
2. Authorization: MembershipGuard decides whether the identity may act
   on a project (or on a task, via the task's project).
"""
