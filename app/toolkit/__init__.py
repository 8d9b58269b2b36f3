"""
Toolkit - Domain-Specific Services.

This app provides services shared by the payments backend:
- EmailService: Centralized email sending with templates

Key components:
    - services/email.py: EmailService class
    - templates/emails/: Donation confirmation templates

Usage:
    from toolkit.services.email import EmailService

Note:
    - This app has no models.
    - For generic infrastructure (exceptions, ServiceResult, validators), see core/
"""
