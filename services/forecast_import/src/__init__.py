"""
WeatherInsight Forecast Import Service

Fetches raw Tomorrow.io forecasts for stale regions within the
provider's daily call quota and stores them in the database.
"""

__version__ = "1.0.0"
