"""
Authentication module for the EHR identity service.

This module provides:
- The credential store shared with the registration workflow
- Login and session refresh
- The authentication gate (bearer token to User)
- Administrator-created accounts
"""
