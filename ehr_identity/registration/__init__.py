"""
Self-service registration: request, email verification, admin review and completion.
"""
