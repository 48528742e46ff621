"""
Email package.

Modules:
- client: EmailClient for sending templated emails via the Communications Service API
"""
