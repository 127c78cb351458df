"""Domain layer — paths, error trees, snapshots, and field validators.

This layer depends only on stdlib.
It must never import from services, infrastructure, plugins, or config.
"""
