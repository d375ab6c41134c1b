"""
Utility Functions

This package contains helper functions for:
- errors: API error types rendered as JSON responses
- ids: MongoDB ObjectId normalisation
- auth_middleware: Bearer token authentication and validation decorators
- file_handler: CAS statement upload and text extraction
- webvtt: Daily.co WebVTT transcript parsing
- analytics: Meeting analytics and calendar bucketing
- calculations: Debt, goal and tax arithmetic
"""
