"""Scheduling infrastructure for SmartCoach.

Modules:
    scheduler — Per-user delivery jobs (run now, once on a date, daily)
    audit     — Bounded, lock-protected audit log shared by jobs and requests
"""
