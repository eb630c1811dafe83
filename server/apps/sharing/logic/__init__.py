"""Business logic layer for sharing app.

This package contains the access-control engine:
- Permission resolution (ownership, grants, folder inheritance)
- Grant upsert, revoke and listing
- Public link issuance, resolution with atomic access counting, revoke
"""
