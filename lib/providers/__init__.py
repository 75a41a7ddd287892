"""Paid contact data providers (Hunter, Snov, Apollo, Google CSE).

All are optional; the pipeline runs on free sources when none is configured.
"""
