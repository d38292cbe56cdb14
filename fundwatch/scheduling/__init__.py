"""
Scheduling Module.

Recurring notifications independent of activity conditions:
- calculator: next fire time for daily / weekly / monthly recurrences
- manager: CRUD plus registration with an external scheduler
- apscheduler_backend: in-process scheduler implementation
"""
