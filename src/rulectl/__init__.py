"""rulectl — versioned security-rule templates for edge/WAF zones."""

__version__ = "0.3.0"
