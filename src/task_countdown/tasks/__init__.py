"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Recurrence, ValidationError)
- recurrence.py: next occurrence of a recurring task
- task_store.py: SQLite-backed ordered collection
- task_api.py: create/edit/toggle/delete, list filtering, JSON export/import
"""
