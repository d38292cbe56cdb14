"""
Alerting Module.

Rule-based alerting over contribution activity:
- schemas: rules, conditions, actions, templates, schedules
- evaluator: metric derivation and condition comparison
- templates: placeholder rendering and default templates
- cooldown: per-rule suppression window
- dispatcher: routes rendered actions to channels
- monitor: periodic evaluation loop
"""
