"""
Gym operations back office: membership and billing lifecycle.

This package contains:
- Lifecycle engine, notification emitter and orchestrator (`gymops.engine`)
- Shared configuration and utilities (`gymops.core`)
- Data model and Supabase integration (`gymops.db`)
- Admin Telegram bot and sweep scheduler (`gymops.bot`)
"""
