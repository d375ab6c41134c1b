"""
Advisor Platform

Flask backend for financial advisors: clients, plans, meetings,
transcriptions, estate planning, letters of engagement and mutual fund
exit strategies, stored in MongoDB.
"""

__version__ = "1.0.0"
