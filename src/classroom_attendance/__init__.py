"""Classroom attendance package.

Organized by feature modules (sessions, records, roster, identity) with a thin
Flask controller layer over service/repository layers.
"""
