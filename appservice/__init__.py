"""Deploy build artifacts to Azure App Service and provision ARM templates."""

__version__ = "1.0.0"
