"""
Configuration

This package contains:
- settings: Environment-driven application configuration
- database: MongoDB connection and index management
- logging: structlog setup for JSON log lines
"""
