"""Build tasks and pipelines.

Every module here is imported by `TaskRegistry.discover`; functions decorated
with `@task(...)` and module-level `Pipeline` objects are registered by name.
Keep one concern per module.
"""
