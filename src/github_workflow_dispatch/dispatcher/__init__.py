"""Dispatch-and-wait components.

- Settings loaded from action inputs
- Payload sanitizing and correlation ids
- Run resolution and completion tracking
- Step outputs
"""
