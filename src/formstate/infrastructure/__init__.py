"""Infrastructure layer — change tracking and observable values.

May import from the domain layer only.
"""
