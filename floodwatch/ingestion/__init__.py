"""
ingestion — weather inputs for the monitoring loop.

    weather_provider — live OpenWeatherMap client + credential validation
    scenarios        — canned demo-mode weather catalog
"""
