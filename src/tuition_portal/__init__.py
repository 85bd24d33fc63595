"""Tuition Portal backend.

This package is organized by feature modules (users, classes, students,
attendance, payments) with a thin Flask controller layer on top of
service/repository layers.
"""
