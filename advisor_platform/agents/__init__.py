"""
AI agents backed by Gemini

Each agent falls back to rule-based output when no API key is configured
or the model call fails:
- PlanAnalysisAgent: Debt strategy, goal analysis and plan recommendations
- TranscriptSummaryAgent: Meeting key points, action items and decisions
- FundDetailsAgent: Public details of a mutual fund scheme
"""
