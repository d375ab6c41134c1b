"""
External service clients

- DailyClient: Daily.co rooms, meeting tokens and transcripts
"""
