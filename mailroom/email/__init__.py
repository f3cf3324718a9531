from mailroom.email.brevo import BrevoSender, EmailConfigurationError, SendResult

__all__ = ["BrevoSender", "EmailConfigurationError", "SendResult"]
