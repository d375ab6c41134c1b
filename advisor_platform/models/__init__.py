"""
Database Models

This package contains MongoDB model classes for:
- Advisor: Advisor authentication and profile management
- Client / ClientInvitation: Client records and onboarding invitations
- Plan: Financial plans with review history and debt strategy
- Meeting / Transcription: Video meetings and their Daily.co transcripts
- EstateInformation: Estate planning sections per client
- LOE: Letters of engagement and client signatures
- MutualFundExitStrategy / MutualFundRecommendation: Fund exit and SIP advice
"""
