"""
API Routers - Organized endpoint handlers for the Camp Planner API.

Each router handles a specific domain:
- auth: Sign-in, sign-up and sign-out
- accounts: Onboarding and the account's kid roster
- schedules: Schedule lifecycle, grid edits, sharing, projections and live events
"""
