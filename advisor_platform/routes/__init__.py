"""
API Routes

This package contains Flask blueprints for:
- auth: Advisor registration, login and profile
- clients: Client management, invitations, CAS uploads and public onboarding
- client_invitations: Invitation history and public token lookup
- plans: Financial plans, debt and goal analysis
- meetings: Daily.co meetings, live transcripts and recordings
- transcriptions: Daily.co transcript sync and download
- estate_planning: Estate sections, wills and estate summary
- loe_automation: Letters of engagement and public signing
- mutual_fund_exit: Mutual fund exit strategies
- mutual_fund_recommend: Mutual fund SIP recommendations
"""
