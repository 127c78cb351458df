"""Service layer — validation scheduling, snapshots, actions, and the engine.

Services may import from domain, infrastructure, config, and plugins.
"""
